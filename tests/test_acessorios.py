import math
from datetime import date, datetime, timedelta
from decimal import Decimal

import pandas as pd
import pytest

from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import AcessorioRepo
from varejo.usecases.acessorios import (
    adicionar_estoque,
    atualizar_valor_recomendado,
    cadastrar_acessorio,
    calcular_reposicao,
    historico_valor_recomendado,
    importar_acessorios_planilha,
    listar_acessorios,
    subtrair_estoque,
    valor_estoque_acessorios,
)

AGORA = datetime(2025, 3, 10, 10, 0)
HOJE = date(2025, 3, 10)


def _setup_db(tmp_path):
    db = str(tmp_path / "acessorios.db")
    apply_migrations(db)
    return db


def _saidas_diarias(db, acessorio_id, dias=90, quantidade=1, hoje=HOJE):
    with connect(db) as c:
        repo = AcessorioRepo(c)
        for i in range(dias):
            dia = hoje - timedelta(days=i)
            repo.registrar_movimento(acessorio_id, "saida", quantidade, "teste", f"{dia.isoformat()}T12:00:00")


def test_cadastro_e_custo_medio(tmp_path):
    db = _setup_db(tmp_path)
    capa = cadastrar_acessorio("Capa iPhone 15", "LOJA-CENTRO", quantidade=10, valor_custo="20",
                               db_path=db, agora=AGORA)
    assert capa["id"] == "ACESS-0100"
    assert capa["quantidade"] == 10
    pelicula = cadastrar_acessorio("Película 3D", "LOJA-CENTRO", db_path=db, agora=AGORA)
    assert pelicula["id"] == "ACESS-0101"

    with pytest.raises(RegraViolada):
        cadastrar_acessorio("capa iphone 15", "LOJA-CENTRO", db_path=db)
    # mesma descrição em outra loja é outro item
    cadastrar_acessorio("Capa iPhone 15", "LOJA-NORTE", db_path=db, agora=AGORA)

    a = adicionar_estoque(capa["id"], 30, custo_unitario="30", ref="NE-2025-00001", db_path=db, agora=AGORA)
    assert a["quantidade"] == 40
    assert Decimal(a["valor_custo"]) == Decimal("27.50")
    assert valor_estoque_acessorios("LOJA-CENTRO", db) == Decimal("1100.00")


def test_saida_exige_estoque(tmp_path):
    db = _setup_db(tmp_path)
    capa = cadastrar_acessorio("Capa", "LOJA-CENTRO", quantidade=3, valor_custo="20", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        subtrair_estoque(capa["id"], 4, db_path=db)
    assert subtrair_estoque(capa["id"], 3, db_path=db, agora=AGORA)["quantidade"] == 0
    with pytest.raises(RegraViolada):
        subtrair_estoque(capa["id"], 0, db_path=db)
    with pytest.raises(RegistroNaoEncontrado):
        subtrair_estoque("ACESS-9999", 1, db_path=db)


def test_historico_valor_recomendado(tmp_path):
    db = _setup_db(tmp_path)
    capa = cadastrar_acessorio("Capa", "LOJA-CENTRO", valor_recomendado="49.90", db_path=db, agora=AGORA)
    atualizar_valor_recomendado(capa["id"], "59.90", "gestor", db_path=db, agora=AGORA)
    atualizar_valor_recomendado(capa["id"], Decimal("54.90"), "gestor", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        atualizar_valor_recomendado(capa["id"], 0, "gestor", db_path=db)

    historico = historico_valor_recomendado(capa["id"], db)
    assert [(h["valor_anterior"], h["valor_novo"]) for h in historico] == [("49.90", "59.90"), ("59.90", "54.90")]
    assert listar_acessorios("LOJA-CENTRO", db)[0]["valor_recomendado"] == "54.90"


def test_reposicao(tmp_path):
    db = _setup_db(tmp_path)
    repor = cadastrar_acessorio("Carregador 20W", "LOJA-CENTRO", quantidade=8, lote_mult=6, db_path=db, agora=AGORA)
    folgado = cadastrar_acessorio("Cabo USB-C", "LOJA-CENTRO", quantidade=100, db_path=db, agora=AGORA)
    parado = cadastrar_acessorio("Capa Galaxy", "LOJA-CENTRO", quantidade=5, db_path=db, agora=AGORA)
    _saidas_diarias(db, repor["id"])
    _saidas_diarias(db, folgado["id"])

    res = {r["id"]: r for r in calcular_reposicao("LOJA-CENTRO", db_path=db, hoje=HOJE)}
    r = res[repor["id"]]
    assert math.isclose(r["mu_d"], 1.0)
    assert math.isclose(r["sigma_d"], 0.0)
    assert math.isclose(r["SS"], 3.29)
    assert math.isclose(r["ROP"], 10.29)
    assert math.isclose(r["necessidade"], 2.29)
    assert r["sugestao_compra"] == 6.0
    assert r["cobertura_dias"] == 8.0
    assert r["status"] == "REPOR"

    assert res[folgado["id"]]["status"] == "OK"
    assert res[folgado["id"]]["sugestao_compra"] == 0.0
    assert res[parado["id"]]["status"] == "VERIFICAR"
    assert res[parado["id"]]["motivo"] == "sem_movimento"


def test_importar_planilha(tmp_path):
    db = _setup_db(tmp_path)
    cadastrar_acessorio("Película 3D", "LOJA-CENTRO", quantidade=2, valor_custo="5", db_path=db, agora=AGORA)
    xlsx = tmp_path / "catalogo.xlsx"
    pd.DataFrame({
        "Acessório": ["Película 3D", "Fone Bluetooth", None],
        "Qtd": ["8", "4", "1"],
        "Custo Unitário": ["R$ 10,00", "R$ 80,00", "1"],
        "Preço Venda": ["29,90", "199,90", "5"],
        "Múltiplo": [None, "2", None],
    }).to_excel(xlsx, index=False)

    res = importar_acessorios_planilha(str(xlsx), "LOJA-CENTRO", db_path=db, agora=AGORA)
    assert res["criados"] == 1
    assert res["atualizados"] == 1

    itens = {a["descricao"]: a for a in listar_acessorios("LOJA-CENTRO", db)}
    assert itens["Película 3D"]["quantidade"] == 10
    assert Decimal(itens["Película 3D"]["valor_custo"]) == Decimal("9.00")
    assert itens["Fone Bluetooth"]["quantidade"] == 4
    assert itens["Fone Bluetooth"]["valor_recomendado"] == "199.90"
    assert itens["Fone Bluetooth"]["lote_mult"] == 2


def test_movimentos_manuais_acompanham_estoque_no_razao(tmp_path):
    from varejo.domain.models import ContaRazao
    from varejo.usecases.financeiro import balancete, saldo_conta

    db = _setup_db(tmp_path)
    capa = cadastrar_acessorio("Capa", "LOJA-CENTRO", quantidade=10, valor_custo="20", db_path=db, agora=AGORA)
    adicionar_estoque(capa["id"], 30, custo_unitario="30", db_path=db, agora=AGORA)
    assert saldo_conta(ContaRazao.ESTOQUE, db) == Decimal("1100.00")

    subtrair_estoque(capa["id"], 4, ref="quebra", db_path=db, agora=AGORA)
    assert saldo_conta(ContaRazao.ESTOQUE, db) == Decimal("990.00")
    assert saldo_conta(ContaRazao.ESTOQUE, db) == valor_estoque_acessorios("LOJA-CENTRO", db)
    assert saldo_conta(ContaRazao.AJUSTE_ESTOQUE, db) == Decimal("-990.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")
