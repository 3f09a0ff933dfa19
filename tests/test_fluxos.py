import pytest

from varejo.domain.erros import PermissaoNegada, TransicaoInvalida
from varejo.domain.fluxos import (
    FLUXO_GARANTIA,
    FLUXO_NOTA,
    FLUXO_OS,
    FLUXO_PARCELA,
    FLUXO_RETIRADA,
    FLUXO_VENDA,
    eh_terminal,
    exigir_permissao_nota,
    exigir_transicao,
    pode_realizar_acao_nota,
    pode_transicionar,
)
from varejo.domain.models import (
    StatusGarantia,
    StatusNota,
    StatusOS,
    StatusParcela,
    StatusRetirada,
    StatusVenda,
)


# ---------------------------------------------------------------------------
# Transições
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "fluxo, atual, novo",
    [
        (FLUXO_NOTA, StatusNota.CRIADA, StatusNota.AGUARDANDO_PAGAMENTO_INICIAL),
        (FLUXO_NOTA, StatusNota.CRIADA, StatusNota.AGUARDANDO_CONFERENCIA),
        (FLUXO_NOTA, StatusNota.CONFERENCIA_PARCIAL, StatusNota.CONFERENCIA_PARCIAL),
        (FLUXO_NOTA, StatusNota.COM_DIVERGENCIA, StatusNota.FINALIZADA),
        (FLUXO_OS, StatusOS.AGUARDANDO_PECA, StatusOS.EM_SERVICO),
        (FLUXO_GARANTIA, StatusGarantia.ATIVA, StatusGarantia.EXPIRADA),
        (FLUXO_RETIRADA, StatusRetirada.EM_DESMONTE, StatusRetirada.CANCELADA),
        (FLUXO_VENDA, StatusVenda.CONFERENCIA_GESTOR, StatusVenda.PAGAMENTO_DOWNGRADE),
        (FLUXO_VENDA, StatusVenda.DEVOLVIDO_FINANCEIRO, StatusVenda.CONFERENCIA_FINANCEIRO),
        (FLUXO_PARCELA, StatusParcela.VENCIDO, StatusParcela.PAGO),
    ],
)
def test_transicoes_validas(fluxo, atual, novo):
    assert pode_transicionar(fluxo, atual, novo)
    exigir_transicao("teste", fluxo, atual, novo)


@pytest.mark.parametrize(
    "fluxo, atual, novo",
    [
        (FLUXO_NOTA, StatusNota.CRIADA, StatusNota.FINALIZADA),
        (FLUXO_NOTA, StatusNota.AGUARDANDO_CONFERENCIA, StatusNota.CONFERENCIA_CONCLUIDA),
        (FLUXO_OS, StatusOS.ABERTA, StatusOS.CONCLUIDA),
        (FLUXO_OS, StatusOS.CANCELADA, StatusOS.ABERTA),
        (FLUXO_GARANTIA, StatusGarantia.EXPIRADA, StatusGarantia.EM_TRATATIVA),
        (FLUXO_VENDA, StatusVenda.AGUARDANDO_CONFERENCIA, StatusVenda.FINALIZADO),
        (FLUXO_VENDA, StatusVenda.FINALIZADO, StatusVenda.CANCELADA),
        (FLUXO_PARCELA, StatusParcela.PAGO, StatusParcela.PENDENTE),
    ],
)
def test_transicoes_invalidas(fluxo, atual, novo):
    assert not pode_transicionar(fluxo, atual, novo)
    with pytest.raises(TransicaoInvalida) as exc:
        exigir_transicao("teste", fluxo, atual, novo)
    assert exc.value.atual == atual
    assert exc.value.novo == novo


def test_status_desconhecido_nao_transiciona():
    assert not pode_transicionar(FLUXO_OS, "Inexistente", StatusOS.ABERTA)


def test_status_terminais():
    assert eh_terminal(FLUXO_NOTA, StatusNota.FINALIZADA)
    assert eh_terminal(FLUXO_VENDA, StatusVenda.CANCELADA)
    assert eh_terminal(FLUXO_OS, StatusOS.CONCLUIDA)
    assert not eh_terminal(FLUXO_VENDA, StatusVenda.FEITO_SINAL)


# ---------------------------------------------------------------------------
# Permissões da nota
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "status, acao, perfil, esperado",
    [
        (StatusNota.AGUARDANDO_PAGAMENTO_INICIAL, "pagar", "Financeiro", True),
        (StatusNota.AGUARDANDO_PAGAMENTO_INICIAL, "pagar", "Estoque", False),
        (StatusNota.AGUARDANDO_CONFERENCIA, "pagar", "Financeiro", False),
        (StatusNota.AGUARDANDO_CONFERENCIA, "conferir", "Estoque", True),
        (StatusNota.CONFERENCIA_PARCIAL, "conferir", "Financeiro", False),
        (StatusNota.COM_DIVERGENCIA, "resolver_divergencia", "Gestor", True),
        (StatusNota.COM_DIVERGENCIA, "resolver_divergencia", "Financeiro", False),
        (StatusNota.CRIADA, "cadastrar", "Estoque", True),
        (StatusNota.FINALIZADA, "finalizar", "Gestor", False),
        (StatusNota.CRIADA, "acao_inexistente", "Gestor", False),
    ],
)
def test_permissoes_nota(status, acao, perfil, esperado):
    assert pode_realizar_acao_nota(status, acao, perfil) is esperado


def test_exigir_permissao_nota_levanta():
    with pytest.raises(PermissaoNegada):
        exigir_permissao_nota(StatusNota.AGUARDANDO_CONFERENCIA, "pagar", "Estoque")
