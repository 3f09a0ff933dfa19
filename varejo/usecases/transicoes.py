# varejo/usecases/transicoes.py
"""
Aplicação de transições de status com registro na timeline.

Toda mudança de status dos casos de uso passa por `transicionar`:
1) valida a transição no fluxo da entidade;
2) grava o novo status com compare-and-set (WHERE status = atual), de modo
   que uma alteração concorrente faz a operação falhar em vez de sobrescrever;
3) registra anterior -> novo na timeline (somente inclusão).
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from typing import Any, Dict, Optional

from varejo.domain.erros import TransicaoInvalida
from varejo.domain.fluxos import Fluxo, exigir_transicao
from varejo.infra.logger import log_database_operation
from varejo.infra.repositories import TimelineRepo


# entidade -> (tabela, coluna de status)
_TABELAS = {
    "nota": ("nota_entrada", "status"),
    "os": ("ordem_servico", "status"),
    "garantia": ("garantia", "status"),
    "tratativa": ("tratativa", "status"),
    "retirada": ("retirada_pecas", "status"),
    "venda": ("venda", "status"),
    "parcela": ("parcela_fiado", "status"),
    "pendente": ("produto_pendente", "status_geral"),
    "solicitacao": ("solicitacao_peca", "status"),
    "lote_pecas": ("lote_pecas", "status"),
    "nota_assistencia": ("nota_assistencia", "status"),
    "consignacao": ("lote_consignacao", "status"),
}


def transicionar(
    conn: sqlite3.Connection,
    entidade: str,
    registro: Dict[str, Any],
    fluxo: Fluxo,
    novo: str,
    agora: str,
    responsavel: Optional[str] = None,
    descricao: Optional[str] = None,
    impacto_financeiro: Optional[Decimal] = None,
    **campos: Any,
) -> Dict[str, Any]:
    """Move `registro` para `novo` e devolve o registro atualizado (em memória).

    `campos` são gravados junto com o status (ex.: data_conclusao).
    """
    tabela, coluna = _TABELAS[entidade]
    atual = registro[coluna]
    exigir_transicao(entidade, fluxo, atual, novo)

    changes = {coluna: novo, **campos}
    sets = ",".join(f"{k} = :{k}" for k in changes)
    cur = conn.execute(
        f"UPDATE {tabela} SET {sets} WHERE id = :_id AND {coluna} = :_atual",
        {**changes, "_id": registro["id"], "_atual": atual},
    )
    if cur.rowcount != 1:
        # outro processo mudou o status entre a leitura e a escrita
        raise TransicaoInvalida(entidade, atual, novo)
    log_database_operation(tabela, "UPDATE", 1, id=registro["id"], status=novo)

    TimelineRepo(conn).registrar(
        entidade,
        registro["id"],
        "status",
        descricao or f"{atual} -> {novo}",
        agora,
        responsavel=responsavel,
        status_anterior=atual,
        status_novo=novo,
        impacto_financeiro=impacto_financeiro,
    )
    return {**registro, **changes}
