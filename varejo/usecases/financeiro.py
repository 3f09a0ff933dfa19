# varejo/usecases/financeiro.py
"""
UC: Financeiro: razão em partidas dobradas, contas, transferências,
despesas e conferência de lançamentos.

Modelo do razão:
- Cada lançamento tem uma conta de débito, uma de crédito e um valor > 0;
  portanto Σ débitos == Σ créditos por construção.
- Lançamentos de um mesmo fato compartilham um `transacao_id` (TRX-AAAA-nnnnnn).
- Lançamentos são imutáveis (trigger no banco); correções são estornos.
- Contas financeiras (CTA-xxx) são contas de ativo: saldo = débitos - créditos.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from varejo.config import DB_PATH
from varejo.domain.calculos import Numero, ZERO, carimbo, dinheiro
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.models import TIPOS_CONTA, TIPOS_DESPESA, ContaRazao
from varejo.infra.db import connect
from varejo.infra.logger import log_database_operation, log_evento, operacao
from varejo.infra.repositories import ContaRepo, DespesaRepo, RazaoRepo, VendaRepo, gerar_id


Partida = Tuple[str, str, Numero]  # (conta_debito, conta_credito, valor)

# meio de pagamento -> tipo de conta padrão
_CONTA_PADRAO_POR_MEIO = {
    "dinheiro": "Caixa",
    "pix": "Pix",
    "cartão": "Conta Bancária",
    "cartao": "Conta Bancária",
    "cartão de crédito": "Conta Bancária",
    "cartão de débito": "Conta Bancária",
    "transferência": "Conta Bancária",
    "boleto": "Conta Bancária",
}


# -------------------------
# Núcleo do razão (conexão aberta)
# -------------------------

def lancar(
    conn: sqlite3.Connection,
    historico: str,
    partidas: Iterable[Partida],
    agora: str,
    ref_tipo: Optional[str] = None,
    ref_id: Optional[str] = None,
) -> str:
    """Grava as partidas sob um único transacao_id e o retorna."""
    partidas = [(d, c, dinheiro(v)) for d, c, v in partidas]
    if not partidas:
        raise RegraViolada("Lançamento sem partidas")
    for debito, credito, valor in partidas:
        if valor <= 0:
            raise RegraViolada(f"Valor de lançamento deve ser positivo ({historico}: {valor})")
        if debito == credito:
            raise RegraViolada(f"Débito e crédito na mesma conta ({debito})")

    trx = gerar_id(conn, "TRX", 6, ano=int(agora[:4]))
    repo = RazaoRepo(conn)
    for debito, credito, valor in partidas:
        repo.insert({
            "transacao_id": trx,
            "data": agora,
            "historico": historico,
            "conta_debito": debito,
            "conta_credito": credito,
            "valor": valor,
            "ref_tipo": ref_tipo,
            "ref_id": ref_id,
        })
    log_database_operation("lancamento", "INSERT", len(partidas), transacao_id=trx)
    log_evento("financeiro", "lancar", trx, historico=historico, origem=f"{ref_tipo}:{ref_id}")
    return trx


def exigir_conta(conn: sqlite3.Connection, conta_id: Optional[str]) -> Dict[str, Any]:
    if not conta_id:
        raise RegraViolada("Conta financeira não informada")
    conta = ContaRepo(conn).get(conta_id)
    if not conta:
        raise RegistroNaoEncontrado("Conta", conta_id)
    if not conta["ativa"]:
        raise RegraViolada(f"Conta {conta_id} está inativa")
    return conta


def conta_padrao(conn: sqlite3.Connection, loja_id: str, meio: str) -> Optional[str]:
    """Conta ativa da loja cujo tipo corresponde ao meio de pagamento."""
    tipo = _CONTA_PADRAO_POR_MEIO.get((meio or "").strip().lower())
    if not tipo:
        return None
    for conta in ContaRepo(conn).listar(loja_id):
        if conta["tipo"] == tipo and conta["ativa"]:
            return conta["id"]
    return None


# -------------------------
# Casos de uso
# -------------------------

def cadastrar_conta(
    nome: str,
    tipo: str,
    loja_id: Optional[str] = None,
    saldo_inicial: Numero = 0,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    if tipo not in TIPOS_CONTA:
        raise RegraViolada(f"Tipo de conta inválido: {tipo} (use {', '.join(TIPOS_CONTA)})")
    quando = carimbo(agora)
    with operacao("conta_cadastrar", {"nome": nome, "tipo": tipo, "loja": loja_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            conta_id = gerar_id(c, "CTA", 3)
            conta = {
                "id": conta_id,
                "nome": nome.strip(),
                "tipo": tipo,
                "loja_id": loja_id,
                "ativa": 1,
                "data_cadastro": quando,
            }
            ContaRepo(c).insert(conta)
            saldo = dinheiro(saldo_inicial)
            if saldo < 0:
                raise RegraViolada("Saldo inicial não pode ser negativo")
            if saldo > 0:
                lancar(c, f"Saldo inicial {nome}", [(conta_id, ContaRazao.SALDO_INICIAL, saldo)],
                       quando, "conta", conta_id)
        ctx["resultado"] = conta_id
    return conta


def movimentar_entre_contas(
    origem: str,
    destino: str,
    valor: Numero,
    responsavel: str,
    descricao: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> str:
    """Transfere entre contas financeiras; a origem precisa ter saldo."""
    valor = dinheiro(valor)
    quando = carimbo(agora)
    with operacao("conta_movimentar", {"origem": origem, "destino": destino, "valor": str(valor)}) as ctx:
        with connect(db_path, imediato=True) as c:
            exigir_conta(c, origem)
            exigir_conta(c, destino)
            if origem == destino:
                raise RegraViolada("Conta de origem e destino são iguais")
            saldo = RazaoRepo(c).saldo(origem)
            if saldo < valor:
                raise RegraViolada(f"Saldo insuficiente em {origem}: {saldo} < {valor}")
            trx = lancar(
                c,
                descricao or f"Transferência {origem} -> {destino} ({responsavel})",
                [(destino, origem, valor)],
                quando,
                "movimentacao",
                f"{origem}>{destino}",
            )
        ctx["resultado"] = trx
    return trx


def registrar_despesa(
    tipo: str,
    descricao: str,
    valor: Numero,
    conta_id: str,
    competencia: Optional[str] = None,
    loja_id: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    if tipo not in TIPOS_DESPESA:
        raise RegraViolada(f"Tipo de despesa inválido: {tipo}")
    valor = dinheiro(valor)
    quando = carimbo(agora)
    with operacao("despesa_registrar", {"tipo": tipo, "descricao": descricao, "valor": str(valor)}) as ctx:
        with connect(db_path, imediato=True) as c:
            exigir_conta(c, conta_id)
            trx = lancar(c, f"Despesa {tipo}: {descricao}",
                         [(ContaRazao.DESPESAS_OPERACIONAIS, conta_id, valor)], quando, "despesa", descricao)
            despesa = {
                "tipo": tipo,
                "descricao": descricao,
                "valor": valor,
                "competencia": competencia or quando[:7],
                "conta_id": conta_id,
                "loja_id": loja_id,
                "transacao_id": trx,
                "data": quando,
            }
            despesa["id"] = DespesaRepo(c).insert(despesa)
        ctx["resultado"] = despesa["id"]
    return despesa


def conferir_lancamento(
    lancamento_id: int,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Marca um lançamento como conferido (Pendente -> Conferido)."""
    with connect(db_path, imediato=True) as c:
        repo = RazaoRepo(c)
        lanc = repo.get(lancamento_id)
        if not lanc:
            raise RegistroNaoEncontrado("Lançamento", str(lancamento_id))
        if lanc["conferido"]:
            raise RegraViolada(f"Lançamento {lancamento_id} já conferido por {lanc['conferido_por']}")
        repo.conferir(lancamento_id, responsavel, carimbo(agora))
        log_evento("financeiro", "conferir", str(lancamento_id), responsavel=responsavel)
        return repo.get(lancamento_id)


def lancamentos_pendentes(conta: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return RazaoRepo(c).pendentes_conferencia(conta)


def saldo_conta(conta: str, db_path: str = DB_PATH) -> Decimal:
    with connect(db_path) as c:
        return RazaoRepo(c).saldo(conta)


def extrato(conta: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Movimentos da conta com saldo acumulado (visão de ativo: débito soma)."""
    with connect(db_path) as c:
        linhas = RazaoRepo(c).extrato(conta)
    saldo = ZERO
    out: List[Dict[str, Any]] = []
    for r in linhas:
        valor = dinheiro(r["valor"])
        entrada = valor if r["conta_debito"] == conta else ZERO
        saida = valor if r["conta_credito"] == conta else ZERO
        saldo += entrada - saida
        out.append({
            "data": r["data"],
            "transacao": r["transacao_id"],
            "historico": r["historico"],
            "entrada": entrada,
            "saida": saida,
            "saldo": dinheiro(saldo),
            "conferido": bool(r["conferido"]),
        })
    return out


def balancete(db_path: str = DB_PATH) -> Dict[str, Any]:
    """Totais por conta; `diferenca` é sempre zero num razão íntegro."""
    with connect(db_path) as c:
        totais = RazaoRepo(c).balancete()
    contas = [
        {
            "conta": conta,
            "debito": t["debito"],
            "credito": t["credito"],
            "saldo": dinheiro(t["debito"] - t["credito"]),
        }
        for conta, t in sorted(totais.items())
    ]
    total_debito = dinheiro(sum((x["debito"] for x in contas), ZERO))
    total_credito = dinheiro(sum((x["credito"] for x in contas), ZERO))
    return {
        "contas": contas,
        "total_debito": total_debito,
        "total_credito": total_credito,
        "diferenca": dinheiro(total_debito - total_credito),
    }


def comissoes_por_vendedor(
    inicio: Optional[str] = None,
    fim: Optional[str] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    """Soma das comissões de vendas finalizadas por vendedor no período (datas ISO)."""
    with connect(db_path) as c:
        vendas = VendaRepo(c).listar(status="Finalizado")
    por_vendedor: Dict[str, Dict[str, Any]] = {}
    for v in vendas:
        data = (v.get("data_finalizacao") or "")[:10]
        if inicio and data < inicio:
            continue
        if fim and data > fim:
            continue
        acc = por_vendedor.setdefault(v["vendedor"], {
            "vendedor": v["vendedor"], "vendas": 0, "total_vendido": ZERO, "comissao": ZERO,
        })
        acc["vendas"] += 1
        acc["total_vendido"] += dinheiro(v["total"])
        acc["comissao"] += dinheiro(v["comissao"])
    return sorted(por_vendedor.values(), key=lambda x: x["comissao"], reverse=True)


def listar_contas(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        repo = RazaoRepo(c)
        contas = ContaRepo(c).listar(loja_id)
        return [{**conta, "saldo": repo.saldo(conta["id"])} for conta in contas]
