# varejo/usecases/solicitacao_pecas.py
"""
UC: Solicitação de peças para OS (compra com fornecedor).

Pendente -> Aprovada -> Enviada -> Recebida (ou Rejeitada antes do envio).

- A solicitação coloca a OS em 'Aguardando Peça'; quando não há mais
  solicitações em aberto para a OS ela volta a 'Em serviço'.
- Aprovadas do mesmo fornecedor são agrupadas num lote (LOTE-xxx).
  O envio do lote gera a nota de assistência NOTA-ASS-xxx para o financeiro.
- O pagamento da nota (notas_assistencia) dá entrada das peças no estoque
  da assistência com origem 'Solicitação de Peça'.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from varejo.config import DB_PATH, RegrasNegocio
from varejo.domain.calculos import Numero, carimbo, dias_sla, dinheiro, soma, valor_recomendado_peca
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_LOTE_PECAS, FLUXO_OS, FLUXO_SOLICITACAO
from varejo.domain.models import (
    ORIGEM_SOLICITACAO,
    StatusLotePecas,
    StatusNotaAssistencia,
    StatusOS,
    StatusSolicitacao,
)
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import (
    LotePecasRepo,
    NotaAssistenciaRepo,
    OSRepo,
    PecaEstoqueRepo,
    SolicitacaoRepo,
    TimelineRepo,
    gerar_id,
)
from .transicoes import transicionar


_EM_ABERTO = (StatusSolicitacao.PENDENTE, StatusSolicitacao.APROVADA, StatusSolicitacao.ENVIADA)


def _exigir_solicitacao(conn: sqlite3.Connection, sol_id: str) -> Dict[str, Any]:
    sol = SolicitacaoRepo(conn).get(sol_id)
    if not sol:
        raise RegistroNaoEncontrado("Solicitação", sol_id)
    return sol


def _exigir_lote(conn: sqlite3.Connection, lote_id: str) -> Dict[str, Any]:
    lote = LotePecasRepo(conn).get(lote_id)
    if not lote:
        raise RegistroNaoEncontrado("Lote de peças", lote_id)
    return lote


def _retomar_os(conn: sqlite3.Connection, os_id: str, agora: str, responsavel: Optional[str]) -> None:
    """OS aguardando peça volta ao serviço quando nada mais está pendente."""
    ordem = OSRepo(conn).get(os_id)
    if not ordem or ordem["status"] != StatusOS.AGUARDANDO_PECA:
        return
    if any(s["status"] in _EM_ABERTO for s in SolicitacaoRepo(conn).listar(os_id=os_id)):
        return
    transicionar(conn, "os", ordem, FLUXO_OS, StatusOS.EM_SERVICO, agora, responsavel,
                 "Peças solicitadas resolvidas")


# -------------------------
# Integração com o financeiro
# -------------------------

def receber_lote(
    conn: sqlite3.Connection,
    nota: Dict[str, Any],
    responsavel: Optional[str],
    agora: str,
    regras: RegrasNegocio,
) -> List[str]:
    """Chamado no pagamento da nota: peças entram no estoque e o lote finaliza."""
    lote = _exigir_lote(conn, nota["ref_id"])
    repo = SolicitacaoRepo(conn)
    estoque = PecaEstoqueRepo(conn)
    geradas = []
    for sol in repo.do_lote(lote["id"]):
        ordem = OSRepo(conn).get(sol["os_id"])
        peca_id = gerar_id(conn, "PEC", 4)
        custo = dinheiro(sol["valor_peca"])
        estoque.insert({
            "id": peca_id,
            "descricao": sol["peca"],
            "modelo_origem": ordem["modelo"] if ordem else None,
            "loja_id": sol["loja_id"],
            "quantidade": int(sol["quantidade"]),
            "valor_custo": custo,
            "valor_recomendado": valor_recomendado_peca(custo, regras),
            "origem": ORIGEM_SOLICITACAO,
            "origem_ref": sol["id"],
            "data_entrada": agora,
        })
        transicionar(conn, "solicitacao", sol, FLUXO_SOLICITACAO, StatusSolicitacao.RECEBIDA, agora, responsavel,
                     f"Recebida via {nota['id']} ({peca_id})", peca_estoque_id=peca_id, data_recebimento=agora)
        TimelineRepo(conn).registrar("os", sol["os_id"], "peca_recebida",
                                     f"{sol['quantidade']}x {sol['peca']} recebida ({peca_id})", agora, responsavel)
        _retomar_os(conn, sol["os_id"], agora, responsavel)
        geradas.append(peca_id)
    transicionar(conn, "lote_pecas", lote, FLUXO_LOTE_PECAS, StatusLotePecas.FINALIZADO, agora, responsavel,
                 f"Nota {nota['id']} paga", data_finalizacao=agora)
    return geradas


# -------------------------
# Casos de uso
# -------------------------

def solicitar_peca(
    os_id: str,
    peca: str,
    quantidade: int = 1,
    justificativa: Optional[str] = None,
    solicitante: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    peca = (peca or "").strip()
    if not peca:
        raise RegraViolada("Descrição da peça é obrigatória")
    quantidade = 1 if quantidade is None else int(quantidade)
    if quantidade < 1:
        raise RegraViolada("Quantidade deve ser >= 1")
    quando = carimbo(agora)
    with operacao("solicitacao_peca", {"os": os_id, "peca": peca}) as ctx:
        with connect(db_path, imediato=True) as c:
            ordem = OSRepo(c).get(os_id)
            if not ordem:
                raise RegistroNaoEncontrado("OS", os_id)
            if ordem["status"] not in StatusOS.ATIVOS:
                raise RegraViolada(f"OS {os_id} está '{ordem['status']}'")
            sol = {
                "id": gerar_id(c, "SOL", 3),
                "os_id": os_id,
                "peca": peca,
                "quantidade": quantidade,
                "justificativa": justificativa,
                "modelo_imei": " / ".join(x for x in (ordem["modelo"], ordem["imei"]) if x) or None,
                "loja_id": ordem["loja_id"],
                "status": StatusSolicitacao.PENDENTE,
                "solicitante": solicitante,
                "data_solicitacao": quando,
            }
            SolicitacaoRepo(c).insert(sol)
            TimelineRepo(c).registrar("solicitacao", sol["id"], "criacao", justificativa or peca, quando, solicitante,
                                      status_novo=StatusSolicitacao.PENDENTE)
            TimelineRepo(c).registrar("os", os_id, "solicitacao_peca", f"{quantidade}x {peca} ({sol['id']})",
                                      quando, solicitante)
            if ordem["status"] != StatusOS.AGUARDANDO_PECA:
                transicionar(c, "os", ordem, FLUXO_OS, StatusOS.AGUARDANDO_PECA, quando, solicitante,
                             f"Aguardando {peca}")
        ctx["resultado"] = sol["id"]
    return sol


def aprovar_solicitacao(
    sol_id: str,
    fornecedor: str,
    valor_peca: Numero,
    responsavel_compra: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    fornecedor = (fornecedor or "").strip()
    if not fornecedor:
        raise RegraViolada("Fornecedor é obrigatório na aprovação")
    valor = dinheiro(valor_peca)
    if valor <= 0:
        raise RegraViolada("Valor da peça deve ser positivo")
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        sol = _exigir_solicitacao(c, sol_id)
        return transicionar(c, "solicitacao", sol, FLUXO_SOLICITACAO, StatusSolicitacao.APROVADA, quando,
                            responsavel_compra, f"Aprovada: {fornecedor} ({valor})", fornecedor=fornecedor,
                            valor_peca=valor, responsavel_compra=responsavel_compra, data_aprovacao=quando)


def rejeitar_solicitacao(
    sol_id: str,
    responsavel: str,
    motivo: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        sol = _exigir_solicitacao(c, sol_id)
        if sol["lote_id"]:
            raise RegraViolada(f"Solicitação {sol_id} já está no lote {sol['lote_id']}")
        sol = transicionar(c, "solicitacao", sol, FLUXO_SOLICITACAO, StatusSolicitacao.REJEITADA, quando,
                           responsavel, motivo or "Rejeitada", motivo_rejeicao=motivo)
        _retomar_os(c, sol["os_id"], quando, responsavel)
        return sol


def criar_lote_pecas(
    fornecedor: str,
    solicitacao_ids: List[str],
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Agrupa solicitações aprovadas do mesmo fornecedor num lote."""
    ids = list(dict.fromkeys(solicitacao_ids or []))
    if not ids:
        raise RegraViolada("Selecione ao menos uma solicitação")
    quando = carimbo(agora)
    with operacao("lote_pecas_criar", {"fornecedor": fornecedor, "solicitacoes": ids}) as ctx:
        with connect(db_path, imediato=True) as c:
            solicitacoes = [_exigir_solicitacao(c, i) for i in ids]
            for sol in solicitacoes:
                if sol["status"] != StatusSolicitacao.APROVADA or sol["lote_id"]:
                    raise RegraViolada(f"Solicitação {sol['id']} não está aprovada e livre ('{sol['status']}')")
                if sol["fornecedor"] != fornecedor:
                    raise RegraViolada(f"Solicitação {sol['id']} é do fornecedor {sol['fornecedor']}")
            lote = {
                "id": gerar_id(c, "LOTE", 3),
                "fornecedor": fornecedor,
                "status": StatusLotePecas.PENDENTE,
                "valor_total": soma(dinheiro(s["valor_peca"]) * int(s["quantidade"]) for s in solicitacoes),
                "responsavel": responsavel,
                "data_criacao": quando,
            }
            LotePecasRepo(c).insert(lote)
            if SolicitacaoRepo(c).vincular_lote(ids, lote["id"]) != len(ids):
                raise RegraViolada("Solicitações alteradas durante a criação do lote")
            TimelineRepo(c).registrar("lote_pecas", lote["id"], "criacao", f"{len(ids)} solicitação(ões)", quando,
                                      responsavel, status_novo=StatusLotePecas.PENDENTE,
                                      impacto_financeiro=lote["valor_total"])
        ctx["resultado"] = lote["id"]
    return lote


def enviar_lote_pecas(
    lote_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Envia o lote ao financeiro: gera a NOTA-ASS pendente de pagamento."""
    quando = carimbo(agora)
    with operacao("lote_pecas_enviar", {"lote": lote_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            lote = _exigir_lote(c, lote_id)
            solicitacoes = SolicitacaoRepo(c).do_lote(lote_id)
            nota = {
                "id": gerar_id(c, "NOTA-ASS", 3),
                "origem": ORIGEM_SOLICITACAO,
                "ref_id": lote_id,
                "fornecedor": lote["fornecedor"],
                "loja_id": solicitacoes[0]["loja_id"] if solicitacoes else None,
                "valor_total": dinheiro(lote["valor_total"]),
                "status": StatusNotaAssistencia.PENDENTE,
                "data_criacao": quando,
            }
            lote = transicionar(c, "lote_pecas", lote, FLUXO_LOTE_PECAS, StatusLotePecas.ENVIADO, quando, responsavel,
                                f"Enviado ao financeiro ({nota['id']})", nota_id=nota["id"], data_envio=quando)
            NotaAssistenciaRepo(c).criar(nota, [
                {
                    "peca": s["peca"],
                    "quantidade": int(s["quantidade"]),
                    "valor_unitario": dinheiro(s["valor_peca"]),
                    "os_id": s["os_id"],
                    "item_ref": s["id"],
                }
                for s in solicitacoes
            ])
            for sol in solicitacoes:
                transicionar(c, "solicitacao", sol, FLUXO_SOLICITACAO, StatusSolicitacao.ENVIADA, quando,
                             responsavel, f"Enviada no lote {lote_id}", data_envio=quando)
            TimelineRepo(c).registrar("nota_assistencia", nota["id"], "criacao", f"Lote {lote_id}", quando,
                                      responsavel, status_novo=StatusNotaAssistencia.PENDENTE,
                                      impacto_financeiro=nota["valor_total"])
        ctx["resultado"] = nota["id"]
    log_evento("assistencia", "lote_enviado", lote_id, nota=nota["id"], valor=str(nota["valor_total"]))
    return {**lote, "nota": nota}


# -------------------------
# Consultas
# -------------------------

def listar_solicitacoes(
    status: Optional[str] = None,
    os_id: Optional[str] = None,
    hoje: Optional[datetime] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    """Inclui `sla_dias` (dias desde a solicitação) para as que estão em aberto."""
    referencia = hoje or datetime.now()
    with connect(db_path) as c:
        solicitacoes = SolicitacaoRepo(c).listar(status, os_id)
    for sol in solicitacoes:
        sol["sla_dias"] = dias_sla(sol["data_solicitacao"], referencia) if sol["status"] in _EM_ABERTO else None
    return solicitacoes


def obter_solicitacao(sol_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        sol = _exigir_solicitacao(c, sol_id)
        sol["timeline"] = TimelineRepo(c).listar("solicitacao", sol_id)
        return sol


def listar_lotes_pecas(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return LotePecasRepo(c).listar(status)


def obter_lote_pecas(lote_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        lote = _exigir_lote(c, lote_id)
        lote["solicitacoes"] = SolicitacaoRepo(c).do_lote(lote_id)
        lote["timeline"] = TimelineRepo(c).listar("lote_pecas", lote_id)
        return lote
