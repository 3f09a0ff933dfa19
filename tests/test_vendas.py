from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import ImeiIndisponivel, RegraViolada, TransicaoInvalida
from varejo.domain.models import (
    AcessorioVenda,
    ContaRazao,
    ItemVenda,
    NovaVenda,
    PagamentoVenda,
    StatusAparelho,
    StatusGarantia,
    StatusPendente,
    StatusVenda,
    TradeIn,
)
from varejo.infra.migrations import apply_migrations
from varejo.usecases.acessorios import cadastrar_acessorio, listar_acessorios
from varejo.usecases.estoque_aparelhos import cadastrar_aparelho, consultar_imei, listar_pendentes
from varejo.usecases.fiado import parcelas_da_venda
from varejo.usecases.financeiro import balancete, cadastrar_conta, saldo_conta
from varejo.usecases.garantias import TIPO_GARANTIA_APPLE, listar_garantias
from varejo.usecases.vendas import (
    aprovar_gestor,
    aprovar_lancamento,
    cancelar_venda,
    completar_sinal,
    devolver_financeiro,
    finalizar_venda,
    finalizar_venda_downgrade,
    listar_vendas,
    normalizar_venda,
    obter_venda,
    recusar_gestor,
    registrar_edicao,
    registrar_venda,
)

AGORA = datetime(2025, 3, 10, 15, 0)
LOJA = "LOJA-CENTRO"
IMEI_1 = "352099001761481"
IMEI_2 = "352099001761499"
IMEI_3 = "359876543210987"


def _setup_db(tmp_path):
    db = str(tmp_path / "vendas.db")
    apply_migrations(db)
    cadastrar_conta("Pix Centro", "Pix", LOJA, db_path=db, agora=AGORA)
    cadastrar_conta("Caixa Centro", "Caixa", LOJA, Decimal("5000"), db_path=db, agora=AGORA)
    cadastrar_aparelho(IMEI_1, "Apple", "iPhone 14", LOJA, Decimal("3000"), db_path=db, agora=AGORA)
    cadastrar_aparelho(IMEI_2, "Apple", "iPhone 12", LOJA, Decimal("2000"), db_path=db, agora=AGORA)
    acessorio = cadastrar_acessorio("Capa iPhone 14", LOJA, quantidade=5, valor_custo="20", db_path=db, agora=AGORA)
    return db, acessorio["id"]


def _venda(itens, pagamentos, acessorios=(), trade_ins=(), sinal=False):
    return NovaVenda(
        loja_id=LOJA,
        vendedor="Ana",
        cliente="João Silva",
        itens=list(itens),
        acessorios=list(acessorios),
        trade_ins=list(trade_ins),
        pagamentos=list(pagamentos),
        sinal=sinal,
    )


def _ate_conferencia_financeiro(db, venda_id):
    aprovar_lancamento(venda_id, "ana", db_path=db, agora=AGORA)
    return aprovar_gestor(venda_id, "gestor", db_path=db, agora=AGORA)


# ---------------------------------------------------------------------------
# Fluxo completo
# ---------------------------------------------------------------------------

def test_fluxo_completo_ate_finalizado(tmp_path):
    db, acessorio_id = _setup_db(tmp_path)
    venda = registrar_venda(_venda(
        [ItemVenda(IMEI_1, Decimal("4500"))],
        [PagamentoVenda("Pix", Decimal("4550"))],
        acessorios=[AcessorioVenda(acessorio_id, 1, Decimal("50"))],
    ), db_path=db, agora=AGORA)
    assert venda["id"] == "VEN-2025-0001"
    assert venda["status"] == StatusVenda.AGUARDANDO_CONFERENCIA
    assert venda["total"] == Decimal("4550.00")
    assert venda["lucro"] == Decimal("1530.00")
    assert consultar_imei(IMEI_1, db)["status"] == StatusAparelho.RESERVADO

    aprovar_lancamento(venda["id"], "ana", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        recusar_gestor(venda["id"], "gestor", "", db_path=db)
    v = recusar_gestor(venda["id"], "gestor", "valor divergente", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.RECUSADA_GESTOR
    assert v["motivo_recusa"] == "valor divergente"

    v = _ate_conferencia_financeiro(db, venda["id"])
    assert v["status"] == StatusVenda.CONFERENCIA_FINANCEIRO
    v = devolver_financeiro(venda["id"], "financeiro", "comprovante ilegível", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.DEVOLVIDO_FINANCEIRO
    aprovar_gestor(venda["id"], "gestor", db_path=db, agora=AGORA)

    registrar_edicao(venda["id"], "ana", "Ajuste de observação", db_path=db, agora=AGORA)
    v = finalizar_venda(venda["id"], "financeiro", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.FINALIZADO
    assert v["comissao"] == Decimal("153.00")
    assert v["transacao_id"].startswith("TRX-2025-")

    assert consultar_imei(IMEI_1, db)["status"] == StatusAparelho.VENDIDO
    garantias = listar_garantias(StatusGarantia.ATIVA, db)
    assert [(g["imei"], g["tipo"], g["data_fim"]) for g in garantias] == [
        (IMEI_1, TIPO_GARANTIA_APPLE, "2026-03-10"),
    ]

    assert saldo_conta("CTA-001", db) == Decimal("4550.00")
    assert saldo_conta(ContaRazao.CMV, db) == Decimal("3020.00")
    # cadastro: 3000 + 2000 + 5 x 20; venda: 3000 + 20
    assert saldo_conta(ContaRazao.ESTOQUE, db) == Decimal("2080.00")
    assert saldo_conta(ContaRazao.DESPESA_COMISSOES, db) == Decimal("153.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")

    detalhe = obter_venda(venda["id"], db)
    assert {l["transacao_id"] for l in detalhe["lancamentos"]} == {v["transacao_id"]}
    assert detalhe["timeline"][0]["tipo"] == "registro"

    with pytest.raises(RegraViolada):
        registrar_edicao(venda["id"], "ana", "tarde demais", db_path=db)
    with pytest.raises(TransicaoInvalida):
        cancelar_venda(venda["id"], "gestor", db_path=db)


# ---------------------------------------------------------------------------
# Reserva de IMEI
# ---------------------------------------------------------------------------

def test_imei_reservado_nao_entra_em_outra_venda(tmp_path):
    db, _ = _setup_db(tmp_path)
    registrar_venda(_venda([ItemVenda(IMEI_2, Decimal("2500"))], [PagamentoVenda("Pix", Decimal("2500"))]),
                    db_path=db, agora=AGORA)

    with pytest.raises(ImeiIndisponivel) as exc:
        registrar_venda(_venda(
            [ItemVenda(IMEI_1, Decimal("4500")), ItemVenda(IMEI_2, Decimal("2500"))],
            [PagamentoVenda("Pix", Decimal("7000"))],
        ), db_path=db, agora=AGORA)
    assert exc.value.imei == IMEI_2

    # a reserva do primeiro item foi desfeita junto com a venda
    assert consultar_imei(IMEI_1, db)["status"] == StatusAparelho.DISPONIVEL
    assert len(listar_vendas(db_path=db)) == 1


def test_falha_no_acessorio_desfaz_reservas(tmp_path):
    db, acessorio_id = _setup_db(tmp_path)
    with pytest.raises(RegraViolada):
        registrar_venda(_venda(
            [ItemVenda(IMEI_1, Decimal("4500"))],
            [PagamentoVenda("Pix", Decimal("4800"))],
            acessorios=[AcessorioVenda(acessorio_id, 6, Decimal("50"))],
        ), db_path=db, agora=AGORA)
    assert consultar_imei(IMEI_1, db)["status"] == StatusAparelho.DISPONIVEL
    assert listar_acessorios(LOJA, db)[0]["quantidade"] == 5


def test_vendas_concorrentes_do_mesmo_imei(tmp_path):
    db, _ = _setup_db(tmp_path)

    def tentar(vendedor):
        venda = _venda([ItemVenda(IMEI_1, Decimal("4500"))], [PagamentoVenda("Pix", Decimal("4500"))])
        venda.vendedor = vendedor
        try:
            return registrar_venda(venda, db_path=db)["id"]
        except ImeiIndisponivel:
            return None

    with ThreadPoolExecutor(max_workers=4) as pool:
        resultados = list(pool.map(tentar, ["Ana", "Bruno", "Carla", "Davi"]))

    vencedoras = [r for r in resultados if r]
    assert len(vencedoras) == 1
    aparelho = consultar_imei(IMEI_1, db)
    assert aparelho["status"] == StatusAparelho.RESERVADO
    assert aparelho["reserva_ref"] == vencedoras[0]


# ---------------------------------------------------------------------------
# Sinal e fiado
# ---------------------------------------------------------------------------

def test_venda_com_sinal(tmp_path):
    db, _ = _setup_db(tmp_path)
    with pytest.raises(RegraViolada):
        registrar_venda(_venda([ItemVenda(IMEI_1, Decimal("4500"))], [PagamentoVenda("Pix", Decimal("1000"))]),
                        db_path=db, agora=AGORA)

    venda = registrar_venda(
        _venda([ItemVenda(IMEI_1, Decimal("4500"))], [PagamentoVenda("Pix", Decimal("1000"))], sinal=True),
        db_path=db, agora=AGORA,
    )
    assert venda["status"] == StatusVenda.FEITO_SINAL
    with pytest.raises(TransicaoInvalida):
        aprovar_lancamento(venda["id"], "ana", db_path=db)
    with pytest.raises(RegraViolada):
        completar_sinal(venda["id"], [PagamentoVenda("Pix", Decimal("3500.01"))], "ana", db_path=db)

    v = completar_sinal(venda["id"], [{"meio": "Dinheiro", "valor": "3500"}], "ana", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.AGUARDANDO_CONFERENCIA
    pagamentos = obter_venda(venda["id"], db)["pagamentos"]
    assert [p["conta_id"] for p in pagamentos] == ["CTA-001", "CTA-002"]


def test_venda_fiado_gera_parcelas_na_finalizacao(tmp_path):
    db, _ = _setup_db(tmp_path)
    venda = registrar_venda(_venda(
        [ItemVenda(IMEI_1, Decimal("4500"))],
        [PagamentoVenda("Pix", Decimal("1000")),
         PagamentoVenda("Fiado", Decimal("3500"), parcelas=3, dia_vencimento=10)],
    ), db_path=db, agora=AGORA)
    assert parcelas_da_venda(venda["id"], db) == []

    _ate_conferencia_financeiro(db, venda["id"])
    finalizar_venda(venda["id"], "financeiro", db_path=db, agora=AGORA)

    parcelas = parcelas_da_venda(venda["id"], db)
    assert [p["data_vencimento"] for p in parcelas] == ["2025-04-10", "2025-05-10", "2025-06-10"]
    assert sum(Decimal(p["valor"]) for p in parcelas) == Decimal("3500.00")
    assert saldo_conta(ContaRazao.CLIENTES_FIADO, db) == Decimal("3500.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")


# ---------------------------------------------------------------------------
# Trade-in e downgrade
# ---------------------------------------------------------------------------

def test_downgrade_com_trade_in(tmp_path):
    db, _ = _setup_db(tmp_path)
    venda = registrar_venda(_venda(
        [ItemVenda(IMEI_2, Decimal("2500"))],
        [],
        trade_ins=[TradeIn("Apple", "iPhone 14 Pro", IMEI_3, Decimal("3000"), saude_bateria=88)],
    ), db_path=db, agora=AGORA)
    assert venda["tipo_operacao"] == "Downgrade"
    assert venda["saldo_devolver"] == Decimal("500.00")

    v = _ate_conferencia_financeiro(db, venda["id"])
    assert v["status"] == StatusVenda.PAGAMENTO_DOWNGRADE
    with pytest.raises(RegraViolada):
        finalizar_venda(venda["id"], "financeiro", db_path=db)
    with pytest.raises(RegraViolada):
        finalizar_venda_downgrade(venda["id"], "CTA-001", "financeiro", db_path=db)

    v = finalizar_venda_downgrade(venda["id"], "CTA-002", "financeiro", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.FINALIZADO
    assert v["comissao"] == Decimal("50.00")

    trade_in = consultar_imei(IMEI_3, db)
    assert trade_in["status"] == StatusAparelho.EM_TRIAGEM
    assert trade_in["categoria"] == "Seminovo"
    assert Decimal(trade_in["valor_custo"]) == Decimal("3000.00")
    assert [p["imei"] for p in listar_pendentes(StatusPendente.PENDENTE_ESTOQUE, db)] == [IMEI_3]

    assert saldo_conta("CTA-002", db) == Decimal("4500.00")
    assert saldo_conta(ContaRazao.DEVOLUCOES_CLIENTES, db) == Decimal("500.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")


def test_trade_in_de_imei_em_estoque(tmp_path):
    db, _ = _setup_db(tmp_path)
    with pytest.raises(ImeiIndisponivel):
        registrar_venda(_venda(
            [ItemVenda(IMEI_1, Decimal("4500"))],
            [PagamentoVenda("Pix", Decimal("2500"))],
            trade_ins=[TradeIn("Apple", "iPhone 12", IMEI_2, Decimal("2000"))],
        ), db_path=db, agora=AGORA)


# ---------------------------------------------------------------------------
# Cancelamento e validação
# ---------------------------------------------------------------------------

def test_cancelar_libera_reserva_e_acessorios(tmp_path):
    db, acessorio_id = _setup_db(tmp_path)
    venda = registrar_venda(_venda(
        [ItemVenda(IMEI_1, Decimal("4500"))],
        [PagamentoVenda("Pix", Decimal("4600"))],
        acessorios=[AcessorioVenda(acessorio_id, 2, Decimal("50"))],
    ), db_path=db, agora=AGORA)
    assert listar_acessorios(LOJA, db)[0]["quantidade"] == 3

    v = cancelar_venda(venda["id"], "gestor", "cliente desistiu", db_path=db, agora=AGORA)
    assert v["status"] == StatusVenda.CANCELADA
    assert consultar_imei(IMEI_1, db)["status"] == StatusAparelho.DISPONIVEL
    assert listar_acessorios(LOJA, db)[0]["quantidade"] == 5
    with pytest.raises(RegraViolada):
        registrar_edicao(venda["id"], "ana", "depois do cancelamento", db_path=db)


def test_cancelar_venda_com_sinal_devolve_valor_recebido(tmp_path):
    db, _ = _setup_db(tmp_path)
    venda = registrar_venda(
        _venda([ItemVenda(IMEI_1, Decimal("4500"))], [PagamentoVenda("Pix", Decimal("1000"))], sinal=True),
        db_path=db, agora=AGORA,
    )
    v = cancelar_venda(venda["id"], "gestor", "cliente desistiu", db_path=db, agora=AGORA)
    assert v["valor_devolvido"] == Decimal("1000.00")
    assert v["transacao_id"].startswith("TRX-2025-")

    detalhe = obter_venda(venda["id"], db)
    partidas = [(l["conta_debito"], l["conta_credito"], Decimal(l["valor"])) for l in detalhe["lancamentos"]]
    assert sorted(partidas) == sorted([
        ("CTA-001", ContaRazao.DEVOLUCOES_CLIENTES, Decimal("1000.00")),
        (ContaRazao.DEVOLUCOES_CLIENTES, "CTA-001", Decimal("1000.00")),
    ])
    assert detalhe["timeline"][-1]["tipo"] == "devolucao"
    assert saldo_conta("CTA-001", db) == Decimal("0.00")
    assert saldo_conta(ContaRazao.DEVOLUCOES_CLIENTES, db) == Decimal("0.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")


def test_cancelar_venda_sem_pagamento_recebido_nao_lanca(tmp_path):
    db, _ = _setup_db(tmp_path)
    venda = registrar_venda(_venda(
        [ItemVenda(IMEI_1, Decimal("4500"))],
        [PagamentoVenda("Fiado", Decimal("4500"), parcelas=2, dia_vencimento=5)],
    ), db_path=db, agora=AGORA)
    v = cancelar_venda(venda["id"], "gestor", db_path=db, agora=AGORA)
    assert v["valor_devolvido"] == Decimal("0.00")
    assert v["transacao_id"] is None
    assert obter_venda(venda["id"], db)["lancamentos"] == []


@pytest.mark.parametrize(
    "alteracao",
    [
        {"cliente": "  "},
        {"itens": [{"imei": IMEI_1, "valor_venda": "10"}, {"imei": IMEI_1, "valor_venda": "10"}]},
        {"trade_ins": [{"imei": IMEI_1, "valor_abatimento": "100"}]},
        {"itens": [], "acessorios": []},
        {"itens": [{"imei": "123", "valor_venda": "10"}]},
        {"pagamentos": [{"meio": "Fiado", "valor": "10"}]},
        {"pagamentos": [{"meio": "Pix", "valor": "0"}]},
        {"pagamentos": [{"meio": "Pix", "valor": "10", "parcelas": 0}]},
        {"taxa_entrega": "-5"},
    ],
)
def test_normalizar_venda_rejeita(alteracao):
    base = {
        "loja_id": LOJA,
        "vendedor": "Ana",
        "cliente": "João",
        "itens": [{"imei": IMEI_1, "valor_venda": "10"}],
        "pagamentos": [{"meio": "Pix", "valor": "10"}],
    }
    with pytest.raises(RegraViolada):
        normalizar_venda({**base, **alteracao})
