# varejo/usecases/notas_assistencia.py
"""
UC: Notas de assistência (contas a pagar a fornecedores de peças).

Geradas pelo envio de um lote de solicitações (NOTA-ASS-xxx) ou por um
pagamento de consignação (NOTA-CONS-xxx). O financeiro paga a nota:

- Solicitação: D ESTOQUE / C FORNECEDORES (entrada das peças) e
  D FORNECEDORES / C conta.
- Consignação: D FORNECEDORES / C conta; o estoque já entrou no consumo.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from varejo.config import DB_PATH
from varejo.domain.calculos import carimbo, dinheiro
from varejo.domain.erros import RegistroNaoEncontrado
from varejo.domain.fluxos import FLUXO_NOTA_ASSISTENCIA
from varejo.domain.models import ORIGEM_SOLICITACAO, ContaRazao, StatusNotaAssistencia
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import NotaAssistenciaRepo, ParamsRepo, RazaoRepo, TimelineRepo
from .consignacao import confirmar_pagamento
from .financeiro import exigir_conta, lancar
from .solicitacao_pecas import receber_lote
from .transicoes import transicionar


def finalizar_nota_assistencia(
    nota_id: str,
    conta_id: str,
    responsavel: str,
    forma_pagamento: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Paga a nota e conclui o fluxo de origem (lote recebido ou PAG confirmado)."""
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("nota_assistencia_pagar", {"nota": nota_id, "conta": conta_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            nota = NotaAssistenciaRepo(c).get(nota_id)
            if not nota:
                raise RegistroNaoEncontrado("Nota de assistência", nota_id)
            exigir_conta(c, conta_id)
            valor = dinheiro(nota["valor_total"])
            nota = transicionar(c, "nota_assistencia", nota, FLUXO_NOTA_ASSISTENCIA, StatusNotaAssistencia.CONCLUIDO,
                                quando, responsavel, f"Paga pela conta {conta_id}", -valor, conta_id=conta_id,
                                forma_pagamento=forma_pagamento or nota["forma_pagamento"],
                                responsavel_financeiro=responsavel, data_conclusao=quando)

            partidas = [(ContaRazao.FORNECEDORES, conta_id, valor)]
            pecas: List[str] = []
            if nota["origem"] == ORIGEM_SOLICITACAO:
                pecas = receber_lote(c, nota, responsavel, quando, regras)
                partidas.insert(0, (ContaRazao.ESTOQUE, ContaRazao.FORNECEDORES, valor))
            else:
                confirmar_pagamento(c, nota, responsavel, quando)
            trx = lancar(c, f"Pagamento {nota_id} ({nota['fornecedor']})", partidas, quando, "nota_assistencia",
                         nota_id)
            NotaAssistenciaRepo(c).update(nota_id, transacao_id=trx)
        ctx["resultado"] = trx
    log_evento("assistencia", "nota_paga", nota_id, origem=nota["origem"], valor=str(valor), conta=conta_id)
    return {**nota, "transacao_id": trx, "pecas_geradas": pecas}


def listar_notas_assistencia(
    status: Optional[str] = None,
    origem: Optional[str] = None,
    db_path: str = DB_PATH,
) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return NotaAssistenciaRepo(c).listar(status, origem)


def obter_nota_assistencia(nota_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        nota = NotaAssistenciaRepo(c).get(nota_id)
        if not nota:
            raise RegistroNaoEncontrado("Nota de assistência", nota_id)
        nota["itens"] = NotaAssistenciaRepo(c).itens(nota_id)
        nota["lancamentos"] = RazaoRepo(c).por_referencia("nota_assistencia", nota_id)
        nota["timeline"] = TimelineRepo(c).listar("nota_assistencia", nota_id)
        return nota
