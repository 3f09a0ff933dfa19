from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import RegistroNaoEncontrado, TransicaoInvalida
from varejo.domain.models import ContaRazao, StatusParcela
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.usecases.fiado import (
    atualizar_vencidas,
    estatisticas_fiado,
    gerar_parcelas,
    listar_parcelas,
    pagar_parcela,
    parcelas_da_venda,
)
from varejo.usecases.financeiro import cadastrar_conta, saldo_conta

HOJE = datetime(2025, 3, 10, 8, 0)


def _setup_db(tmp_path):
    db = str(tmp_path / "fiado.db")
    apply_migrations(db)
    conta = cadastrar_conta("Caixa", "Caixa", "LOJA-CENTRO", db_path=db, agora=HOJE)
    venda = {"id": "VEN-2025-0001", "cliente": "Maria Souza", "loja_id": "LOJA-CENTRO"}
    with connect(db) as c:
        gerar_parcelas(c, venda, "1000", 3, 5, "2025-01-20T10:00:00")
    return db, conta["id"]


def test_parcelas_geradas(tmp_path):
    db, _ = _setup_db(tmp_path)
    parcelas = parcelas_da_venda("VEN-2025-0001", db)
    assert [p["id"] for p in parcelas] == ["VEN-2025-0001-P01", "VEN-2025-0001-P02", "VEN-2025-0001-P03"]
    assert [p["data_vencimento"] for p in parcelas] == ["2025-02-05", "2025-03-05", "2025-04-05"]
    assert [Decimal(p["valor"]) for p in parcelas] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert all(p["status"] == StatusParcela.PENDENTE for p in parcelas)


def test_atualizar_vencidas_e_listar(tmp_path):
    db, _ = _setup_db(tmp_path)
    assert atualizar_vencidas(HOJE, db) == 2
    assert atualizar_vencidas(HOJE, db) == 0

    vencidas = listar_parcelas(StatusParcela.VENCIDO, hoje=HOJE, db_path=db)
    assert [p["dias_para_vencimento"] for p in vencidas] == [-33, -5]
    pendentes = listar_parcelas(StatusParcela.PENDENTE, cliente="maria souza", hoje=HOJE, db_path=db)
    assert [p["dias_para_vencimento"] for p in pendentes] == [26]


def test_pagar_parcela_lanca_no_razao(tmp_path):
    db, conta = _setup_db(tmp_path)
    atualizar_vencidas(HOJE, db)
    parcela = pagar_parcela("VEN-2025-0001-P01", conta, "caixa", db_path=db, agora=HOJE)
    assert parcela["status"] == StatusParcela.PAGO
    assert parcela["recebido_por"] == "caixa"
    assert parcela["transacao_id"].startswith("TRX-2025-")
    assert saldo_conta(conta, db) == Decimal("333.33")
    assert saldo_conta(ContaRazao.CLIENTES_FIADO, db) == Decimal("-333.33")

    with pytest.raises(TransicaoInvalida):
        pagar_parcela("VEN-2025-0001-P01", conta, "caixa", db_path=db, agora=HOJE)
    with pytest.raises(RegistroNaoEncontrado):
        pagar_parcela("VEN-2025-0001-P09", conta, "caixa", db_path=db)


def test_estatisticas(tmp_path):
    db, conta = _setup_db(tmp_path)
    atualizar_vencidas(HOJE, db)
    pagar_parcela("VEN-2025-0001-P01", conta, "caixa", db_path=db, agora=HOJE)
    stats = estatisticas_fiado(db)
    assert stats["por_status"][StatusParcela.PAGO]["quantidade"] == 1
    assert stats["por_status"][StatusParcela.VENCIDO]["valor"] == Decimal("333.33")
    assert stats["total_em_aberto"] == Decimal("666.67")
    assert stats["total_recebido"] == Decimal("333.33")
    assert stats["clientes_devedores"] == 1
