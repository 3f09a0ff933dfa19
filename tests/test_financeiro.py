import sqlite3
from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.models import ContaRazao
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.usecases.financeiro import (
    balancete,
    cadastrar_conta,
    conferir_lancamento,
    extrato,
    lancamentos_pendentes,
    lancar,
    listar_contas,
    movimentar_entre_contas,
    registrar_despesa,
    saldo_conta,
)

AGORA = datetime(2025, 3, 10, 10, 0)


def _setup_db(tmp_path):
    db = str(tmp_path / "fin.db")
    apply_migrations(db)
    caixa = cadastrar_conta("Caixa Centro", "Caixa", "LOJA-CENTRO", Decimal("1000"), db_path=db, agora=AGORA)
    pix = cadastrar_conta("Pix Centro", "Pix", "LOJA-CENTRO", db_path=db, agora=AGORA)
    return db, caixa["id"], pix["id"]


def test_cadastrar_conta_com_saldo_inicial(tmp_path):
    db, caixa, pix = _setup_db(tmp_path)
    assert caixa == "CTA-001"
    assert pix == "CTA-002"
    assert saldo_conta(caixa, db) == Decimal("1000.00")
    assert saldo_conta(pix, db) == Decimal("0.00")
    saldos = {c["id"]: c["saldo"] for c in listar_contas("LOJA-CENTRO", db)}
    assert saldos == {caixa: Decimal("1000.00"), pix: Decimal("0.00")}


def test_tipo_de_conta_invalido(tmp_path):
    db = str(tmp_path / "fin.db")
    apply_migrations(db)
    with pytest.raises(RegraViolada):
        cadastrar_conta("Cofre", "Cofre", db_path=db)


def test_transferencia_e_saldo_insuficiente(tmp_path):
    db, caixa, pix = _setup_db(tmp_path)
    movimentar_entre_contas(caixa, pix, "400", "gestor", db_path=db, agora=AGORA)
    assert saldo_conta(caixa, db) == Decimal("600.00")
    assert saldo_conta(pix, db) == Decimal("400.00")

    with pytest.raises(RegraViolada):
        movimentar_entre_contas(pix, caixa, "400.01", "gestor", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        movimentar_entre_contas(pix, pix, "1", "gestor", db_path=db, agora=AGORA)
    with pytest.raises(RegistroNaoEncontrado):
        movimentar_entre_contas(pix, "CTA-999", "1", "gestor", db_path=db, agora=AGORA)


def test_despesa_debita_conta(tmp_path):
    db, caixa, _ = _setup_db(tmp_path)
    despesa = registrar_despesa("Fixa", "Aluguel", "250", caixa, db_path=db, agora=AGORA)
    assert despesa["competencia"] == "2025-03"
    assert saldo_conta(caixa, db) == Decimal("750.00")
    assert saldo_conta(ContaRazao.DESPESAS_OPERACIONAIS, db) == Decimal("250.00")
    with pytest.raises(RegraViolada):
        registrar_despesa("Eventual", "Café", "10", caixa, db_path=db)


def test_extrato_acumula_saldo(tmp_path):
    db, caixa, pix = _setup_db(tmp_path)
    movimentar_entre_contas(caixa, pix, "100", "gestor", db_path=db, agora=AGORA)
    linhas = extrato(caixa, db)
    assert [l["saldo"] for l in linhas] == [Decimal("1000.00"), Decimal("900.00")]
    assert linhas[1]["saida"] == Decimal("100.00")


def test_balancete_fecha_em_zero(tmp_path):
    db, caixa, pix = _setup_db(tmp_path)
    movimentar_entre_contas(caixa, pix, "300", "gestor", db_path=db, agora=AGORA)
    registrar_despesa("Variável", "Frete", "45.90", pix, db_path=db, agora=AGORA)
    b = balancete(db)
    assert b["diferenca"] == Decimal("0.00")
    assert b["total_debito"] == b["total_credito"] == Decimal("1345.90")


def test_lancar_valida_partidas(tmp_path):
    db, caixa, _ = _setup_db(tmp_path)
    with connect(db) as c:
        with pytest.raises(RegraViolada):
            lancar(c, "vazio", [], "2025-03-10T10:00:00")
        with pytest.raises(RegraViolada):
            lancar(c, "zero", [(caixa, ContaRazao.RECEITA_VENDAS, 0)], "2025-03-10T10:00:00")
        with pytest.raises(RegraViolada):
            lancar(c, "mesma conta", [(caixa, caixa, 10)], "2025-03-10T10:00:00")


def test_lancamento_imutavel(tmp_path):
    db, caixa, _ = _setup_db(tmp_path)
    with pytest.raises(sqlite3.DatabaseError):
        with connect(db) as c:
            c.execute("UPDATE lancamento SET valor = '1.00' WHERE conta_debito = ?", (caixa,))
    with pytest.raises(sqlite3.DatabaseError):
        with connect(db) as c:
            c.execute("DELETE FROM lancamento")
    assert saldo_conta(caixa, db) == Decimal("1000.00")


def test_conferencia_de_lancamento(tmp_path):
    db, caixa, _ = _setup_db(tmp_path)
    pendentes = lancamentos_pendentes(caixa, db)
    assert len(pendentes) == 1
    lanc = conferir_lancamento(pendentes[0]["id"], "financeiro", db_path=db, agora=AGORA)
    assert lanc["conferido"] == 1
    assert lanc["conferido_por"] == "financeiro"
    assert lancamentos_pendentes(caixa, db) == []
    with pytest.raises(RegraViolada):
        conferir_lancamento(pendentes[0]["id"], "outro", db_path=db)
