# varejo/usecases/relatorios.py
"""
Relatórios gerenciais:
- painel de estoque de aparelhos (quantidade/valor por status, bateria baixa)
- notas de entrada pendentes
- OS em aberto com SLA
- ranking de vendedores por comissão
- reposição de acessórios (filtra do calcular_reposicao)

Cada relatório devolve (colunas, linhas, mensagem) para exibição tabular.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from varejo.config import DB_PATH
from varejo.domain.calculos import ZERO, dinheiro
from varejo.domain.models import StatusAparelho, StatusOS
from varejo.infra.db import connect
from varejo.infra.logger import log_database_operation, log_system_event
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import AparelhoRepo, ParamsRepo
from varejo.infra.views import create_views
from .acessorios import calcular_reposicao, valor_estoque_acessorios
from .financeiro import comissoes_por_vendedor
from .ordens_servico import listar_os


Relatorio = Tuple[List[str], List[List[Any]], Optional[str]]


def _preparar(db_path: str) -> None:
    apply_migrations(db_path)
    create_views(db_path)


# ----------------------
# 1) Painel de estoque
# ----------------------

def painel_estoque(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> Dict[str, Any]:
    """
    Quantidade e custo por status (vw_estoque_aparelhos), valor do estoque
    disponível e aparelhos disponíveis com saúde de bateria abaixo do mínimo.
    """
    log_system_event("painel_estoque_start", {"loja_id": loja_id})
    _preparar(db_path)
    regras = ParamsRepo(db_path).regras()

    with connect(db_path) as c:
        sql = "SELECT status, SUM(quantidade) AS quantidade, SUM(valor_custo) AS valor_custo FROM vw_estoque_aparelhos"
        params: List[Any] = []
        if loja_id:
            sql += " WHERE loja_id = ?"
            params.append(loja_id)
        por_status = {
            r[0]: {"quantidade": int(r[1] or 0), "valor_custo": dinheiro(r[2] or 0)}
            for r in c.execute(sql + " GROUP BY status", params).fetchall()
        }
        disponiveis = AparelhoRepo(c).listar(loja_id, StatusAparelho.DISPONIVEL)
    log_database_operation("vw_estoque_aparelhos", "SELECT", len(por_status))

    bateria_baixa = [
        a for a in disponiveis
        if a.get("saude_bateria") is not None and int(a["saude_bateria"]) < regras.bateria_minima
    ]
    valor_disponivel = dinheiro(sum((dinheiro(a["valor_custo"]) for a in disponiveis), ZERO))
    return {
        "por_status": por_status,
        "disponiveis": len(disponiveis),
        "valor_estoque": valor_disponivel,
        "valor_acessorios": valor_estoque_acessorios(loja_id, db_path),
        "bateria_baixa": bateria_baixa,
    }


# ----------------------
# 2) Notas pendentes
# ----------------------

def notas_pendentes(db_path: str = DB_PATH) -> Relatorio:
    """Notas não finalizadas, mais antigas primeiro."""
    _preparar(db_path)
    with connect(db_path) as c:
        cur = c.execute(
            """
            SELECT id, fornecedor, loja_id, tipo_pagamento, status, data_status,
                   valor_total, valor_pago, valor_pendente, qtd_informada, qtd_conferida
            FROM vw_notas_pendentes
            ORDER BY data_status, id
            """
        )
        rows = [list(r) for r in cur.fetchall()]
    log_database_operation("vw_notas_pendentes", "SELECT", len(rows))

    columns = [
        "Nota", "Fornecedor", "Loja", "Pagamento", "Status", "Desde",
        "Total", "Pago", "Pendente", "Qtd Informada", "Qtd Conferida",
    ]
    msg = None if rows else "Nenhuma nota pendente."
    return columns, rows, msg


# ----------------------
# 3) OS em aberto
# ----------------------

def os_em_aberto(
    loja_id: Optional[str] = None,
    hoje: Optional[datetime] = None,
    db_path: str = DB_PATH,
) -> Relatorio:
    """OS ativas ordenadas pelo maior SLA."""
    ordens = [o for o in listar_os(loja_id=loja_id, db_path=db_path, hoje=hoje) if o["status"] in StatusOS.ATIVOS]
    ordens.sort(key=lambda o: -o["sla_dias"])
    columns = ["OS", "Cliente", "Loja", "Setor", "Técnico", "Status", "IMEI", "Valor", "SLA (dias)"]
    rows = [
        [
            o["id"],
            o.get("cliente", ""),
            o.get("loja_id", ""),
            o.get("setor", ""),
            o.get("tecnico") or "",
            o["status"],
            o.get("imei") or "",
            o.get("valor_total", ""),
            o["sla_dias"],
        ]
        for o in ordens
    ]
    msg = None if rows else "Nenhuma OS em aberto."
    return columns, rows, msg


# ----------------------
# 4) Ranking de vendedores
# ----------------------

def ranking_vendedores(
    inicio: Optional[str] = None,
    fim: Optional[str] = None,
    db_path: str = DB_PATH,
) -> Relatorio:
    ranking = comissoes_por_vendedor(inicio, fim, db_path)
    columns = ["#", "Vendedor", "Vendas", "Total Vendido", "Ticket Médio", "Comissão"]
    rows = [
        [
            i + 1,
            r["vendedor"],
            r["vendas"],
            dinheiro(r["total_vendido"]),
            dinheiro(r["total_vendido"] / r["vendas"]),
            dinheiro(r["comissao"]),
        ]
        for i, r in enumerate(ranking)
    ]
    msg = None if rows else "Nenhuma venda finalizada no período."
    return columns, rows, msg


# ----------------------
# 5) Reposição de acessórios
# ----------------------

def relatorio_reposicao_acessorios(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> Relatorio:
    """
    Usa o cálculo completo (calcular_reposicao) e filtra CRITICO/REPOR,
    priorizando críticos e depois a maior necessidade.
    """
    log_system_event("relatorio_reposicao_start", {"loja_id": loja_id})
    todos = calcular_reposicao(loja_id, db_path=db_path)
    out = [r for r in todos if r.get("status") in {"CRITICO", "REPOR"}]
    prioridade = {"CRITICO": 0, "REPOR": 1}
    out.sort(key=lambda r: (prioridade[r["status"]], -(r.get("necessidade") or 0.0)))
    log_system_event("relatorio_reposicao_success", {"analisados": len(todos), "reposicao": len(out)})

    columns = ["ID", "Descrição", "Loja", "Status", "Estoque", "Mu D", "SS", "ROP", "Necessidade", "Sugestão"]
    rows = [
        [
            r["id"],
            r["descricao"],
            r["loja_id"],
            r["status"],
            r["estoque"],
            r["mu_d"],
            r["SS"],
            r["ROP"],
            r["necessidade"],
            r["sugestao_compra"],
        ]
        for r in out
    ]
    msg = None if rows else "Nenhum acessório crítico ou para reposição."
    return columns, rows, msg
