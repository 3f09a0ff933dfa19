# varejo/domain/calculos.py
"""
Cálculos de negócio puros: dinheiro, comissões, rentabilidade, parcelas
de fiado, prazos (SLA/garantia) e alertas da nota de entrada.

Todas as funções dependem apenas de seus argumentos, o que facilita os
testes unitários. Valores monetários são `Decimal` com 2 casas.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Union

from varejo.config import DEFAULTS, RegrasNegocio
from .erros import EntradaInvalida, RegraViolada
from .models import StatusNota


Numero = Union[int, float, str, Decimal]

CENTAVO = Decimal("0.01")
ZERO = Decimal("0.00")


def dinheiro(valor: Optional[Numero]) -> Decimal:
    """Converte para Decimal com 2 casas (ROUND_HALF_UP). None vira 0,00."""
    if valor is None:
        return ZERO
    bruto = repr(valor) if isinstance(valor, float) else valor
    try:
        convertido = Decimal(bruto.strip() if isinstance(bruto, str) else bruto)
        if not convertido.is_finite():
            raise InvalidOperation(bruto)
        return convertido.quantize(CENTAVO, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise EntradaInvalida("valor monetário", valor) from None


def soma(valores: Iterable[Numero]) -> Decimal:
    return dinheiro(sum((dinheiro(v) for v in valores), ZERO))


def _como_data(d: Union[str, date, datetime]) -> date:
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    return datetime.fromisoformat(str(d)).date()


# -------------------------
# Comissões
# -------------------------

def taxa_comissao(loja_id: Optional[str], regras: RegrasNegocio = DEFAULTS) -> Decimal:
    """10% em lojas físicas, 6% na loja online/matriz."""
    if loja_id and loja_id.upper() in regras.lojas_online:
        return Decimal(str(regras.comissao_loja_online))
    return Decimal(str(regras.comissao_loja_fisica))


def calcular_comissao(lucro: Numero, loja_id: Optional[str], regras: RegrasNegocio = DEFAULTS) -> Decimal:
    lucro = dinheiro(lucro)
    if lucro < 0:
        raise RegraViolada(f"Lucro residual negativo ({lucro}); comissão não pode ser calculada")
    return dinheiro(lucro * taxa_comissao(loja_id, regras))


def calcular_comissao_hibrida(
    valor_garantia: Numero,
    lucro_bruto: Numero,
    loja_id: Optional[str],
    regras: RegrasNegocio = DEFAULTS,
) -> Dict[str, Decimal]:
    """Comissão sobre garantia estendida + comissão sobre o lucro residual.

    comissao_garantia = valor_garantia * 10%
    lucro_residual    = max(0, lucro_bruto - comissao_garantia)
    comissao_lucro    = lucro_residual * taxa da loja
    """
    comissao_garantia = dinheiro(dinheiro(valor_garantia) * Decimal(str(regras.comissao_garantia)))
    residual = dinheiro(lucro_bruto) - comissao_garantia
    if residual < 0:
        residual = ZERO
    comissao_lucro = calcular_comissao(residual, loja_id, regras)
    return {
        "comissao_garantia": comissao_garantia,
        "lucro_residual": dinheiro(residual),
        "comissao_lucro": comissao_lucro,
        "total": dinheiro(comissao_garantia + comissao_lucro),
    }


# -------------------------
# Rentabilidade
# -------------------------

def margem_percentual(lucro: Numero, custo: Numero) -> Decimal:
    custo = dinheiro(custo)
    if custo == 0:
        return ZERO
    return dinheiro(dinheiro(lucro) / custo * 100)


def calcular_rentabilidade(itens: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """lucro = venda - custo; margem = lucro / custo * 100 (por item e total)."""
    linhas: List[Dict[str, Any]] = []
    for it in itens:
        venda = dinheiro(it.get("valor_venda"))
        custo = dinheiro(it.get("valor_custo"))
        lucro = venda - custo
        linhas.append({**it, "lucro": lucro, "margem": margem_percentual(lucro, custo)})
    total_venda = soma(l["valor_venda"] for l in linhas)
    total_custo = soma(l["valor_custo"] for l in linhas)
    total_lucro = dinheiro(total_venda - total_custo)
    return {
        "itens": linhas,
        "total_venda": total_venda,
        "total_custo": total_custo,
        "lucro": total_lucro,
        "margem": margem_percentual(total_lucro, total_custo),
    }


# -------------------------
# Fiado
# -------------------------

def gerar_valores_parcelas(total: Numero, n: int) -> List[Decimal]:
    """Divide `total` em `n` parcelas de centavos cuja soma é exatamente `total`.

    As primeiras n-1 parcelas recebem total/n truncado no centavo; a última
    absorve o resto.
    """
    if n < 1:
        raise RegraViolada("Número de parcelas deve ser >= 1")
    total = dinheiro(total)
    if total <= 0:
        raise RegraViolada("Valor do fiado deve ser positivo")
    base = (total / n).quantize(CENTAVO, rounding=ROUND_DOWN)
    valores = [base] * (n - 1)
    valores.append(total - base * (n - 1))
    return valores


def data_vencimento(base: Union[str, date, datetime], indice: int, dia_vencimento: int) -> date:
    """Vencimento da parcela `indice` (0-based): mês da base + indice + 1.

    O dia é limitado ao último dia do mês (ex.: dia 31 em fevereiro -> 28/29).
    """
    if not 1 <= int(dia_vencimento) <= 31:
        raise RegraViolada("Dia de vencimento deve estar entre 1 e 31")
    d = _como_data(base)
    meses = d.month - 1 + indice + 1
    ano = d.year + meses // 12
    mes = meses % 12 + 1
    ultimo = calendar.monthrange(ano, mes)[1]
    return date(ano, mes, min(int(dia_vencimento), ultimo))


def dias_para_vencimento(vencimento: Union[str, date], hoje: Union[str, date, datetime]) -> int:
    """Dias até o vencimento (negativo se já venceu)."""
    return (_como_data(vencimento) - _como_data(hoje)).days


# -------------------------
# Prazos
# -------------------------

def dias_sla(data_abertura: Union[str, date, datetime], hoje: Union[str, date, datetime]) -> int:
    """Dias corridos desde a abertura (valor absoluto, inteiro)."""
    return abs((_como_data(hoje) - _como_data(data_abertura)).days)


def data_fim_garantia(inicio: Union[str, date, datetime], meses: int) -> date:
    d = _como_data(inicio)
    total = d.month - 1 + int(meses)
    ano = d.year + total // 12
    mes = total % 12 + 1
    return date(ano, mes, min(d.day, calendar.monthrange(ano, mes)[1]))


def status_expiracao(data_fim: Union[str, date], hoje: Union[str, date, datetime]) -> Dict[str, Any]:
    dias = dias_para_vencimento(data_fim, hoje)
    if dias < 0:
        status = "expirada"
    elif dias <= 7:
        status = "urgente"
    elif dias <= 30:
        status = "atencao"
    else:
        status = "ativa"
    return {"status": status, "dias_restantes": dias}


# -------------------------
# Peças
# -------------------------

def valor_peca_com_desconto(valor: Numero, percentual: Numero = 0) -> Decimal:
    pct = Decimal(str(percentual or 0))
    if pct < 0 or pct > 100:
        raise RegraViolada("Percentual de desconto deve estar entre 0 e 100")
    return dinheiro(dinheiro(valor) * (Decimal("1") - pct / Decimal("100")))


def valor_recomendado_peca(custo: Numero, regras: RegrasNegocio = DEFAULTS) -> Decimal:
    return dinheiro(dinheiro(custo) * Decimal(str(regras.markup_peca)))


def validar_custo_retirada(custo_aparelho: Numero, pecas: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Compara a soma das peças retiradas com o custo do aparelho.

    A validação é informativa: `valido` indica se as peças cobrem o custo.
    """
    custo = dinheiro(custo_aparelho)
    total = soma(dinheiro(p.get("valor")) * int(p.get("quantidade") or 1) for p in pecas)
    diferenca = total - custo
    percentual = margem_percentual(diferenca, custo) if custo else ZERO
    return {
        "custo_aparelho": custo,
        "soma_pecas": total,
        "diferenca": dinheiro(diferenca),
        "percentual": percentual,
        "valido": total >= custo,
    }


# -------------------------
# Alertas da nota de entrada
# -------------------------

_STATUS_CRITICOS_NOTA = (
    StatusNota.AGUARDANDO_PAGAMENTO_INICIAL,
    StatusNota.AGUARDANDO_PAGAMENTO_FINAL,
    StatusNota.COM_DIVERGENCIA,
)


def houve_divergencia(
    valor_total: Numero,
    valor_conferido: Numero,
    valor_pago: Numero,
    regras: RegrasNegocio = DEFAULTS,
) -> bool:
    """Divergência: conferido difere do total da nota ou pago excede o conferido."""
    total = dinheiro(valor_total)
    conferido = dinheiro(valor_conferido)
    pago = dinheiro(valor_pago)
    tol = total * Decimal(str(regras.tolerancia_divergencia))
    return abs(conferido - total) > tol or pago > conferido + tol


def _dias_desde(iso: Optional[str], agora: datetime) -> Optional[int]:
    if not iso:
        return None
    return (agora - datetime.fromisoformat(iso)).days


def verificar_alertas_nota(
    nota: Dict[str, Any],
    produtos: List[Dict[str, Any]],
    agora: datetime,
    regras: RegrasNegocio = DEFAULTS,
) -> List[Dict[str, Any]]:
    """Calcula os alertas vigentes de uma nota (não persiste nada)."""
    alertas: List[Dict[str, Any]] = []
    status = nota["status"]

    if status == StatusNota.COM_DIVERGENCIA:
        alertas.append({
            "tipo": "divergencia_valor",
            "mensagem": f"Pago {dinheiro(nota['valor_pago'])} x conferido {dinheiro(nota['valor_conferido'])}",
        })

    if status == StatusNota.CONFERENCIA_PARCIAL:
        dias = _dias_desde(nota.get("data_ultima_conferencia"), agora)
        if dias is not None and dias >= regras.dias_conferencia_parcial:
            alertas.append({
                "tipo": "conferencia_parcial_longa",
                "mensagem": f"Conferência parcial há {dias} dias",
            })

    qtd_cadastrada = sum(int(p["quantidade"]) for p in produtos)
    qtd_informada = int(nota.get("qtd_informada") or 0)
    if qtd_informada and qtd_cadastrada > qtd_informada:
        alertas.append({
            "tipo": "qtd_excedida",
            "mensagem": f"Cadastrados {qtd_cadastrada} de {qtd_informada} informados",
        })

    if status == StatusNota.CONFERENCIA_PARCIAL:
        sem_imei = sum(
            int(p["quantidade"]) - int(p.get("qtd_conferida") or 0)
            for p in produtos
            if p["tipo_produto"] == "Aparelho"
        )
        if sem_imei > 0:
            alertas.append({
                "tipo": "imei_ausente",
                "mensagem": f"{sem_imei} aparelho(s) aguardando conferência com IMEI",
            })

    if status in _STATUS_CRITICOS_NOTA:
        dias = _dias_desde(nota.get("data_status"), agora)
        if dias is not None and dias >= regras.dias_status_critico:
            alertas.append({
                "tipo": "status_critico",
                "mensagem": f"Nota em '{status}' há {dias} dias",
            })

    return alertas


def carimbo(agora: Optional[datetime] = None) -> str:
    """Timestamp ISO (segundos) gravado nos registros e na timeline."""
    return (agora or datetime.now()).isoformat(timespec="seconds")
