# varejo/usecases/fiado.py
"""
UC: Fiado (venda a prazo direto com a loja) e suas parcelas.

- As parcelas nascem na finalização da venda: Σ parcelas == valor do fiado.
- Pagamento de parcela: D conta / C CLIENTES_FIADO.
- Parcelas pendentes com vencimento passado viram 'Vencido'.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from varejo.config import DB_PATH
from varejo.domain.calculos import ZERO, carimbo, data_vencimento, dias_para_vencimento, dinheiro, gerar_valores_parcelas
from varejo.domain.erros import RegistroNaoEncontrado
from varejo.domain.fluxos import FLUXO_PARCELA
from varejo.domain.models import ContaRazao, StatusParcela
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import ParcelaRepo
from .financeiro import exigir_conta, lancar
from .transicoes import transicionar


def gerar_parcelas(
    conn: sqlite3.Connection,
    venda: Dict[str, Any],
    valor: Any,
    n: int,
    dia_vencimento: int,
    quando: str,
) -> List[Dict[str, Any]]:
    """Cria as parcelas da venda; a primeira vence no mês seguinte."""
    repo = ParcelaRepo(conn)
    parcelas = []
    for i, v in enumerate(gerar_valores_parcelas(valor, int(n))):
        parcela = {
            "id": f"{venda['id']}-P{i + 1:02d}",
            "venda_id": venda["id"],
            "cliente": venda.get("cliente"),
            "loja_id": venda.get("loja_id"),
            "numero": i + 1,
            "total_parcelas": int(n),
            "valor": v,
            "data_vencimento": data_vencimento(quando, i, dia_vencimento).isoformat(),
            "status": StatusParcela.PENDENTE,
        }
        repo.insert(parcela)
        parcelas.append(parcela)
    log_evento("financeiro", "parcelas_fiado", venda["id"], n=n, total=str(dinheiro(valor)))
    return parcelas


def pagar_parcela(
    parcela_id: str,
    conta_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with operacao("parcela_pagar", {"parcela": parcela_id, "conta": conta_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            parcela = ParcelaRepo(c).get(parcela_id)
            if not parcela:
                raise RegistroNaoEncontrado("Parcela", parcela_id)
            exigir_conta(c, conta_id)
            valor = dinheiro(parcela["valor"])
            trx = lancar(c, f"Recebimento fiado {parcela_id} ({parcela['cliente']})",
                         [(conta_id, ContaRazao.CLIENTES_FIADO, valor)], quando, "parcela", parcela_id)
            parcela = transicionar(
                c, "parcela", parcela, FLUXO_PARCELA, StatusParcela.PAGO, quando, responsavel,
                impacto_financeiro=valor, data_pagamento=quando, conta_id=conta_id,
                recebido_por=responsavel, transacao_id=trx,
            )
        ctx["resultado"] = trx
    return parcela


def atualizar_vencidas(hoje: Optional[datetime] = None, db_path: str = DB_PATH) -> int:
    """Pendente -> Vencido para parcelas com vencimento anterior a hoje."""
    quando = carimbo(hoje)
    with connect(db_path, imediato=True) as c:
        vencidas = ParcelaRepo(c).pendentes_vencidas(quando[:10])
        for p in vencidas:
            transicionar(c, "parcela", p, FLUXO_PARCELA, StatusParcela.VENCIDO, quando, "Sistema",
                         f"Vencida em {p['data_vencimento']}")
    return len(vencidas)


def listar_parcelas(
    status: Optional[str] = None,
    cliente: Optional[str] = None,
    hoje: Optional[datetime] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    hoje = hoje or datetime.now()
    with connect(db_path) as c:
        parcelas = ParcelaRepo(c).listar(status, cliente)
    for p in parcelas:
        p["dias_para_vencimento"] = (
            None if p["status"] == StatusParcela.PAGO else dias_para_vencimento(p["data_vencimento"], hoje)
        )
    return parcelas


def parcelas_da_venda(venda_id: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return ParcelaRepo(c).por_venda(venda_id)


def estatisticas_fiado(db_path: str = DB_PATH) -> Dict[str, Any]:
    """Quantidade e valor por status, total em aberto e clientes devedores."""
    with connect(db_path) as c:
        parcelas = ParcelaRepo(c).listar()
    por_status: Dict[str, Dict[str, Any]] = {
        s: {"quantidade": 0, "valor": ZERO}
        for s in (StatusParcela.PENDENTE, StatusParcela.VENCIDO, StatusParcela.PAGO)
    }
    devedores = set()
    for p in parcelas:
        acc = por_status[p["status"]]
        acc["quantidade"] += 1
        acc["valor"] += dinheiro(p["valor"])
        if p["status"] != StatusParcela.PAGO:
            devedores.add((p["cliente"] or "").lower())
    em_aberto = por_status[StatusParcela.PENDENTE]["valor"] + por_status[StatusParcela.VENCIDO]["valor"]
    return {
        "por_status": por_status,
        "total_em_aberto": dinheiro(em_aberto),
        "total_recebido": dinheiro(por_status[StatusParcela.PAGO]["valor"]),
        "clientes_devedores": len(devedores),
    }
