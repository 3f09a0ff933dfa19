# varejo/domain/fluxos.py
"""
Máquinas de estado das entidades com fluxo (nota, OS, garantia, venda...).

Cada fluxo é um dicionário status -> conjunto de próximos status válidos.
Os casos de uso nunca escrevem um status sem antes passar por
`exigir_transicao`; status terminais mapeiam para o conjunto vazio.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Mapping

from .erros import PermissaoNegada, TransicaoInvalida
from .models import (
    StatusConsignacao,
    StatusGarantia,
    StatusLotePecas,
    StatusNota,
    StatusNotaAssistencia,
    StatusOS,
    StatusParcela,
    StatusPendente,
    StatusRetirada,
    StatusSolicitacao,
    StatusTratativa,
    StatusVenda,
)


Fluxo = Mapping[str, FrozenSet[str]]


def _fluxo(tabela: Dict[str, tuple]) -> Dict[str, FrozenSet[str]]:
    return {k: frozenset(v) for k, v in tabela.items()}


FLUXO_NOTA = _fluxo({
    StatusNota.CRIADA: (StatusNota.AGUARDANDO_PAGAMENTO_INICIAL, StatusNota.AGUARDANDO_CONFERENCIA),
    StatusNota.AGUARDANDO_PAGAMENTO_INICIAL: (StatusNota.PAGAMENTO_PARCIAL, StatusNota.PAGAMENTO_CONCLUIDO),
    StatusNota.PAGAMENTO_PARCIAL: (StatusNota.AGUARDANDO_CONFERENCIA,),
    StatusNota.PAGAMENTO_CONCLUIDO: (StatusNota.AGUARDANDO_CONFERENCIA,),
    StatusNota.AGUARDANDO_CONFERENCIA: (StatusNota.CONFERENCIA_PARCIAL,),
    StatusNota.CONFERENCIA_PARCIAL: (
        StatusNota.CONFERENCIA_PARCIAL,
        StatusNota.CONFERENCIA_CONCLUIDA,
        StatusNota.COM_DIVERGENCIA,
    ),
    StatusNota.CONFERENCIA_CONCLUIDA: (StatusNota.AGUARDANDO_PAGAMENTO_FINAL, StatusNota.FINALIZADA),
    StatusNota.AGUARDANDO_PAGAMENTO_FINAL: (StatusNota.FINALIZADA,),
    StatusNota.COM_DIVERGENCIA: (StatusNota.AGUARDANDO_PAGAMENTO_FINAL, StatusNota.FINALIZADA),
    StatusNota.FINALIZADA: (),
})

FLUXO_OS = _fluxo({
    StatusOS.ABERTA: (StatusOS.EM_SERVICO, StatusOS.AGUARDANDO_PECA, StatusOS.CANCELADA),
    StatusOS.EM_SERVICO: (StatusOS.AGUARDANDO_PECA, StatusOS.CONCLUIDA, StatusOS.CANCELADA),
    StatusOS.AGUARDANDO_PECA: (StatusOS.EM_SERVICO, StatusOS.CANCELADA),
    StatusOS.CONCLUIDA: (),
    StatusOS.CANCELADA: (),
})

FLUXO_GARANTIA = _fluxo({
    StatusGarantia.ATIVA: (StatusGarantia.EM_TRATATIVA, StatusGarantia.EXPIRADA),
    StatusGarantia.EM_TRATATIVA: (StatusGarantia.CONCLUIDA,),
    StatusGarantia.EXPIRADA: (),
    StatusGarantia.CONCLUIDA: (),
})

FLUXO_TRATATIVA = _fluxo({
    StatusTratativa.EM_ANDAMENTO: (StatusTratativa.CONCLUIDO,),
    StatusTratativa.CONCLUIDO: (),
})

FLUXO_RETIRADA = _fluxo({
    StatusRetirada.PENDENTE: (StatusRetirada.EM_DESMONTE, StatusRetirada.CANCELADA),
    StatusRetirada.EM_DESMONTE: (StatusRetirada.CONCLUIDA, StatusRetirada.CANCELADA),
    StatusRetirada.CONCLUIDA: (),
    StatusRetirada.CANCELADA: (),
})

_CONFERENCIA_GESTOR = (
    StatusVenda.CONFERENCIA_FINANCEIRO,
    StatusVenda.RECUSADA_GESTOR,
    StatusVenda.PAGAMENTO_DOWNGRADE,
)

FLUXO_VENDA = _fluxo({
    StatusVenda.FEITO_SINAL: (StatusVenda.AGUARDANDO_CONFERENCIA, StatusVenda.CANCELADA),
    StatusVenda.AGUARDANDO_CONFERENCIA: (StatusVenda.CONFERENCIA_GESTOR, StatusVenda.CANCELADA),
    StatusVenda.RECUSADA_GESTOR: (StatusVenda.CONFERENCIA_GESTOR, StatusVenda.CANCELADA),
    StatusVenda.CONFERENCIA_GESTOR: _CONFERENCIA_GESTOR,
    StatusVenda.DEVOLVIDO_FINANCEIRO: _CONFERENCIA_GESTOR,
    StatusVenda.CONFERENCIA_FINANCEIRO: (StatusVenda.FINALIZADO, StatusVenda.DEVOLVIDO_FINANCEIRO),
    StatusVenda.PAGAMENTO_DOWNGRADE: (StatusVenda.FINALIZADO,),
    StatusVenda.FINALIZADO: (),
    StatusVenda.CANCELADA: (),
})

FLUXO_PARCELA = _fluxo({
    StatusParcela.PENDENTE: (StatusParcela.PAGO, StatusParcela.VENCIDO),
    StatusParcela.VENCIDO: (StatusParcela.PAGO,),
    StatusParcela.PAGO: (),
})

FLUXO_PENDENTE = _fluxo({
    StatusPendente.PENDENTE_ESTOQUE: (
        StatusPendente.EM_ANALISE,
        StatusPendente.LIBERADO,
        StatusPendente.RETIRADA_PECAS,
    ),
    StatusPendente.EM_ANALISE: (
        StatusPendente.AGUARDANDO_PECA,
        StatusPendente.LIBERADO,
        StatusPendente.RETIRADA_PECAS,
    ),
    StatusPendente.AGUARDANDO_PECA: (StatusPendente.EM_ANALISE, StatusPendente.LIBERADO),
    StatusPendente.LIBERADO: (),
    StatusPendente.RETIRADA_PECAS: (),
})

FLUXO_SOLICITACAO = _fluxo({
    StatusSolicitacao.PENDENTE: (StatusSolicitacao.APROVADA, StatusSolicitacao.REJEITADA),
    StatusSolicitacao.APROVADA: (StatusSolicitacao.ENVIADA, StatusSolicitacao.REJEITADA),
    StatusSolicitacao.ENVIADA: (StatusSolicitacao.RECEBIDA,),
    StatusSolicitacao.REJEITADA: (),
    StatusSolicitacao.RECEBIDA: (),
})

FLUXO_LOTE_PECAS = _fluxo({
    StatusLotePecas.PENDENTE: (StatusLotePecas.ENVIADO,),
    StatusLotePecas.ENVIADO: (StatusLotePecas.FINALIZADO,),
    StatusLotePecas.FINALIZADO: (),
})

FLUXO_NOTA_ASSISTENCIA = _fluxo({
    StatusNotaAssistencia.PENDENTE: (StatusNotaAssistencia.CONCLUIDO,),
    StatusNotaAssistencia.CONCLUIDO: (),
})

# O status do lote consignado é derivado dos itens e pagamentos; o fluxo
# limita os saltos possíveis entre uma operação e outra.
FLUXO_CONSIGNACAO = _fluxo({
    StatusConsignacao.ABERTO: (
        StatusConsignacao.EM_ACERTO,
        StatusConsignacao.AGUARDANDO_PAGAMENTO,
        StatusConsignacao.CONCLUIDO,
        StatusConsignacao.DEVOLVIDO,
    ),
    StatusConsignacao.EM_ACERTO: (
        StatusConsignacao.AGUARDANDO_PAGAMENTO,
        StatusConsignacao.CONCLUIDO,
        StatusConsignacao.DEVOLVIDO,
    ),
    StatusConsignacao.AGUARDANDO_PAGAMENTO: (
        StatusConsignacao.ABERTO,
        StatusConsignacao.EM_ACERTO,
        StatusConsignacao.CONCLUIDO,
    ),
    StatusConsignacao.CONCLUIDO: (),
    StatusConsignacao.DEVOLVIDO: (),
})


def pode_transicionar(fluxo: Fluxo, atual: str, novo: str) -> bool:
    """Retorna True se `novo` é um próximo status válido a partir de `atual`."""
    return novo in fluxo.get(atual, frozenset())


def exigir_transicao(entidade: str, fluxo: Fluxo, atual: str, novo: str) -> None:
    """Levanta `TransicaoInvalida` se a transição não estiver no fluxo."""
    if not pode_transicionar(fluxo, atual, novo):
        raise TransicaoInvalida(entidade, atual, novo)


def eh_terminal(fluxo: Fluxo, status: str) -> bool:
    return not fluxo.get(status)


# -------------------------
# Permissões da nota de entrada
# -------------------------

PERFIS = ("Estoque", "Financeiro", "Gestor", "Sistema")

_STATUS_PAGAMENTO = (
    StatusNota.AGUARDANDO_PAGAMENTO_INICIAL,
    StatusNota.CONFERENCIA_CONCLUIDA,
    StatusNota.AGUARDANDO_PAGAMENTO_FINAL,
)

_STATUS_CADASTRO = (
    StatusNota.CRIADA,
    StatusNota.AGUARDANDO_PAGAMENTO_INICIAL,
    StatusNota.PAGAMENTO_PARCIAL,
    StatusNota.PAGAMENTO_CONCLUIDO,
    StatusNota.AGUARDANDO_CONFERENCIA,
    StatusNota.CONFERENCIA_PARCIAL,
)

_STATUS_CONFERENCIA = (
    StatusNota.AGUARDANDO_CONFERENCIA,
    StatusNota.CONFERENCIA_PARCIAL,
)

# acao -> (perfis autorizados, status em que a ação é permitida; None = qualquer não final)
_PERMISSOES_NOTA = {
    "cadastrar": (("Estoque", "Gestor"), _STATUS_CADASTRO),
    "pagar": (("Financeiro", "Gestor"), _STATUS_PAGAMENTO),
    "conferir": (("Estoque", "Gestor"), _STATUS_CONFERENCIA),
    "resolver_divergencia": (("Gestor",), (StatusNota.COM_DIVERGENCIA,)),
    "finalizar": (("Financeiro", "Gestor", "Sistema"), None),
}


def pode_realizar_acao_nota(status: str, acao: str, perfil: str) -> bool:
    """Verifica se `perfil` pode executar `acao` numa nota em `status`.

    O perfil Sistema executa transições automáticas e só aparece
    explicitamente em `finalizar`.
    """
    if status == StatusNota.FINALIZADA:
        return False
    regra = _PERMISSOES_NOTA.get(acao)
    if regra is None:
        return False
    perfis, status_ok = regra
    if perfil not in perfis:
        return False
    return status_ok is None or status in status_ok


def exigir_permissao_nota(status: str, acao: str, perfil: str) -> None:
    if not pode_realizar_acao_nota(status, acao, perfil):
        raise PermissaoNegada(perfil, f"{acao} (status '{status}')")
