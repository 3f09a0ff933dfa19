# varejo/usecases/acessorios.py
"""
UC: Estoque de acessórios (cadastro, entradas, saídas, valor recomendado)
e cálculo de reposição.

Regras:
- Identificadores começam em ACESS-0100.
- Um acessório é único por (descrição sem diferenciar maiúsculas, loja);
  notas de entrada usam `obter_ou_criar_acessorio`.
- Saídas só ocorrem com estoque suficiente (UPDATE condicional).
- Entradas com custo recalculam o custo médio ponderado.
- Todo movimento vai para `acessorio_movimento`, base da demanda diária
  usada na reposição (SS/ROP).
- Entradas e saídas manuais (cadastro, ajuste, planilha) movimentam
  ESTOQUE no razão contra AJUSTE_ESTOQUE; as de nota e venda são
  lançadas pelos respectivos fluxos.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from varejo.adapters.planilhas import load_acessorios_from_xlsx
from varejo.config import DB_PATH
from varejo.domain.calculos import Numero, carimbo, dinheiro
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.models import ContaRazao
from varejo.domain.reposicao import (
    arredonda_multiplo,
    demanda_leadtime,
    estoque_seguranca,
    metricas_demanda,
    ponto_pedido,
    sigma_leadtime,
    status_por_estoque,
    z_from_service_level,
)
from varejo.infra.db import connect
from varejo.infra.logger import log_database_operation, log_evento, log_file_operation, operacao
from varejo.infra.repositories import AcessorioRepo, ParamsRepo, gerar_id
from .financeiro import lancar


ID_INICIAL_ACESSORIO = 100


# -------------------------
# Helpers (conexão aberta)
# -------------------------

def exigir_acessorio(conn: sqlite3.Connection, acessorio_id: str) -> Dict[str, Any]:
    acessorio = AcessorioRepo(conn).get(acessorio_id)
    if not acessorio:
        raise RegistroNaoEncontrado("Acessório", acessorio_id)
    return acessorio


def _novo_acessorio(
    conn: sqlite3.Connection,
    descricao: str,
    loja_id: str,
    agora: str,
    categoria: Optional[str] = None,
    valor_custo: Optional[Numero] = None,
    valor_recomendado: Optional[Numero] = None,
    lote_mult: Optional[int] = None,
) -> Dict[str, Any]:
    descricao = (descricao or "").strip()
    if not descricao:
        raise RegraViolada("Descrição do acessório é obrigatória")
    if AcessorioRepo(conn).get_by_descricao(descricao, loja_id):
        raise RegraViolada(f"Acessório '{descricao}' já cadastrado na loja {loja_id}")
    acessorio = {
        "id": gerar_id(conn, "ACESS", 4, inicio=ID_INICIAL_ACESSORIO),
        "descricao": descricao,
        "categoria": categoria,
        "loja_id": loja_id,
        "quantidade": 0,
        "valor_custo": dinheiro(valor_custo),
        "valor_recomendado": dinheiro(valor_recomendado) if valor_recomendado is not None else None,
        "lote_mult": lote_mult,
        "data_cadastro": agora,
    }
    AcessorioRepo(conn).insert(acessorio)
    log_database_operation("acessorio", "INSERT", 1, id=acessorio["id"])
    return acessorio


def obter_ou_criar_acessorio(
    conn: sqlite3.Connection,
    descricao: str,
    loja_id: str,
    agora: str,
    categoria: Optional[str] = None,
    valor_custo: Optional[Numero] = None,
) -> Dict[str, Any]:
    existente = AcessorioRepo(conn).get_by_descricao(descricao, loja_id)
    if existente:
        return existente
    return _novo_acessorio(conn, descricao, loja_id, agora, categoria, valor_custo)


def entrada_acessorio(
    conn: sqlite3.Connection,
    acessorio_id: str,
    quantidade: int,
    custo_unitario: Optional[Numero],
    ref: Optional[str],
    agora: str,
) -> Dict[str, Any]:
    if int(quantidade) <= 0:
        raise RegraViolada("Quantidade de entrada deve ser positiva")
    repo = AcessorioRepo(conn)
    acessorio = exigir_acessorio(conn, acessorio_id)
    if custo_unitario is not None:
        qtd_atual = int(acessorio["quantidade"])
        custo_atual = dinheiro(acessorio["valor_custo"])
        novo = dinheiro(custo_unitario)
        medio = dinheiro((custo_atual * qtd_atual + novo * int(quantidade)) / (qtd_atual + int(quantidade)))
        repo.update(acessorio_id, valor_custo=medio)
    repo.adicionar(acessorio_id, int(quantidade))
    repo.registrar_movimento(acessorio_id, "entrada", int(quantidade), ref, agora)
    return repo.get(acessorio_id)


def baixar_acessorio(
    conn: sqlite3.Connection,
    acessorio_id: str,
    quantidade: int,
    tipo: str,
    ref: Optional[str],
    agora: str,
) -> Dict[str, Any]:
    """Subtrai do estoque; levanta RegraViolada se não houver quantidade suficiente."""
    if int(quantidade) <= 0:
        raise RegraViolada("Quantidade de saída deve ser positiva")
    repo = AcessorioRepo(conn)
    acessorio = exigir_acessorio(conn, acessorio_id)
    if not repo.subtrair(acessorio_id, int(quantidade)):
        raise RegraViolada(
            f"Estoque insuficiente de {acessorio['descricao']}: {acessorio['quantidade']} < {quantidade}"
        )
    repo.registrar_movimento(acessorio_id, tipo, int(quantidade), ref, agora)
    return repo.get(acessorio_id)


def devolver_acessorio(conn: sqlite3.Connection, acessorio_id: str, quantidade: int, ref: str, agora: str) -> None:
    repo = AcessorioRepo(conn)
    repo.adicionar(acessorio_id, int(quantidade))
    repo.registrar_movimento(acessorio_id, "devolucao", int(quantidade), ref, agora)


def _lancar_ajuste(
    conn: sqlite3.Connection,
    acessorio: Dict[str, Any],
    quantidade: int,
    custo_unitario: Optional[Numero],
    agora: str,
    saida: bool = False,
) -> Optional[str]:
    """Lança no razão uma entrada (ou saída) manual de acessório pelo custo."""
    unitario = dinheiro(acessorio["valor_custo"] if custo_unitario is None else custo_unitario)
    valor = dinheiro(unitario * int(quantidade))
    if valor <= 0:
        return None
    if saida:
        partida = (ContaRazao.AJUSTE_ESTOQUE, ContaRazao.ESTOQUE, valor)
        historico = f"Saída manual {quantidade}x {acessorio['descricao']}"
    else:
        partida = (ContaRazao.ESTOQUE, ContaRazao.AJUSTE_ESTOQUE, valor)
        historico = f"Entrada manual {quantidade}x {acessorio['descricao']}"
    return lancar(conn, historico, [partida], agora, "acessorio", acessorio["id"])


# -------------------------
# Casos de uso
# -------------------------

def cadastrar_acessorio(
    descricao: str,
    loja_id: str,
    quantidade: int = 0,
    valor_custo: Optional[Numero] = None,
    valor_recomendado: Optional[Numero] = None,
    categoria: Optional[str] = None,
    lote_mult: Optional[int] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with operacao("acessorio_cadastrar", {"descricao": descricao, "loja": loja_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            acessorio = _novo_acessorio(c, descricao, loja_id, quando, categoria, valor_custo,
                                        valor_recomendado, lote_mult)
            if int(quantidade) > 0:
                acessorio = entrada_acessorio(c, acessorio["id"], int(quantidade), None, "cadastro", quando)
                _lancar_ajuste(c, acessorio, int(quantidade), None, quando)
        ctx["resultado"] = acessorio["id"]
    return acessorio


def adicionar_estoque(
    acessorio_id: str,
    quantidade: int,
    custo_unitario: Optional[Numero] = None,
    ref: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        acessorio = entrada_acessorio(c, acessorio_id, quantidade, custo_unitario, ref, quando)
        _lancar_ajuste(c, acessorio, quantidade, custo_unitario, quando)
    log_evento("vendas", "acessorio_entrada", acessorio_id, quantidade=quantidade)
    return acessorio


def subtrair_estoque(
    acessorio_id: str,
    quantidade: int,
    ref: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        acessorio = baixar_acessorio(c, acessorio_id, quantidade, "saida", ref, quando)
        _lancar_ajuste(c, acessorio, quantidade, None, quando, saida=True)
    log_evento("vendas", "acessorio_saida", acessorio_id, quantidade=quantidade)
    return acessorio


def atualizar_valor_recomendado(
    acessorio_id: str,
    valor: Numero,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    valor = dinheiro(valor)
    if valor <= 0:
        raise RegraViolada("Valor recomendado deve ser positivo")
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        repo = AcessorioRepo(c)
        acessorio = exigir_acessorio(c, acessorio_id)
        repo.insert_historico_valor({
            "acessorio_id": acessorio_id,
            "valor_anterior": acessorio["valor_recomendado"],
            "valor_novo": valor,
            "responsavel": responsavel,
            "data": quando,
        })
        repo.update(acessorio_id, valor_recomendado=valor)
        return repo.get(acessorio_id)


def historico_valor_recomendado(acessorio_id: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        exigir_acessorio(c, acessorio_id)
        return AcessorioRepo(c).historico_valor(acessorio_id)


def listar_acessorios(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return AcessorioRepo(c).listar(loja_id)


def importar_acessorios_planilha(
    path: str,
    loja_id: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Importa/atualiza o catálogo de acessórios de uma loja a partir de XLSX."""
    quando = carimbo(agora)
    with operacao("acessorio_importar", {"file_path": path, "loja": loja_id}) as ctx:
        rows = load_acessorios_from_xlsx(path)
        log_file_operation("import", path, rows_processed=len(rows))
        criados = atualizados = 0
        with connect(db_path, imediato=True) as c:
            repo = AcessorioRepo(c)
            for r in rows:
                existente = repo.get_by_descricao(r["descricao"], loja_id)
                if existente:
                    atualizados += 1
                    acessorio = existente
                    if r.get("lote_mult"):
                        repo.update(acessorio["id"], lote_mult=r["lote_mult"])
                else:
                    criados += 1
                    acessorio = _novo_acessorio(c, r["descricao"], loja_id, quando, r.get("categoria"),
                                                r.get("custo_unitario"), r.get("valor_recomendado"),
                                                r.get("lote_mult"))
                if r["quantidade"] > 0:
                    acessorio = entrada_acessorio(c, acessorio["id"], r["quantidade"], r.get("custo_unitario"),
                                                  f"planilha:{path}", quando)
                    _lancar_ajuste(c, acessorio, r["quantidade"], r.get("custo_unitario"), quando)
        ctx["resultado"] = {"arquivo": path, "criados": criados, "atualizados": atualizados}
    return ctx["resultado"]


# -------------------------
# Reposição
# -------------------------

def calcular_reposicao(
    loja_id: Optional[str] = None,
    janela_dias: int = 90,
    db_path: str = DB_PATH,
    hoje: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Calcula SS, ROP, necessidade e sugestão de compra por acessório.

    Fluxo:
    1) Lê nível de serviço e lead time (params ou DEFAULTS).
    2) Monta a série diária de saídas na janela (dias sem saída = 0).
    3) µd, σd da série; SS = z·σDL; ROP = µd·µt + SS.
    4) necessidade = max(0, ROP - estoque), arredondada ao múltiplo de compra.
    """
    regras = ParamsRepo(db_path).regras()
    z = z_from_service_level(regras.nivel_servico)
    mu_t, sigma_t = regras.mu_t_dias, regras.sigma_t_dias
    hoje = hoje or date.today()
    inicio = hoje - timedelta(days=janela_dias - 1)
    dias = [(inicio + timedelta(days=i)).isoformat() for i in range(janela_dias)]

    resultados: List[Dict[str, Any]] = []
    with connect(db_path) as c:
        repo = AcessorioRepo(c)
        for a in repo.listar(loja_id):
            por_dia = repo.saidas_diarias(a["id"], inicio.isoformat())
            estoque = float(a["quantidade"])
            base = {
                "id": a["id"],
                "descricao": a["descricao"],
                "loja_id": a["loja_id"],
                "estoque": estoque,
            }
            if not por_dia:
                resultados.append({**base, "status": "VERIFICAR", "motivo": "sem_movimento"})
                continue

            mu_d, sigma_d = metricas_demanda(max(0, por_dia.get(d, 0)) for d in dias)
            mu_DL = demanda_leadtime(mu_d, mu_t)
            sigma_DL = sigma_leadtime(mu_d, sigma_d, mu_t, sigma_t)
            SS = estoque_seguranca(z, sigma_DL)
            ROP = ponto_pedido(mu_DL, SS)
            necessidade = max(0.0, ROP - estoque)
            resultados.append({
                **base,
                "mu_d": round(mu_d, 4),
                "sigma_d": round(sigma_d, 4),
                "SS": round(SS, 2),
                "ROP": round(ROP, 2),
                "necessidade": round(necessidade, 2),
                "sugestao_compra": arredonda_multiplo(necessidade, a.get("lote_mult") or 1) if necessidade else 0.0,
                "cobertura_dias": round(estoque / mu_d, 1) if mu_d > 0 else None,
                "status": status_por_estoque(estoque, SS, ROP),
            })
    return resultados


def valor_estoque_acessorios(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> Decimal:
    with connect(db_path) as c:
        return dinheiro(sum(
            (dinheiro(a["valor_custo"]) * int(a["quantidade"]) for a in AcessorioRepo(c).listar(loja_id)),
            Decimal("0"),
        ))
