from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import ImeiIndisponivel, RegraViolada, TransicaoInvalida
from varejo.domain.models import PecaRetirada, StatusAparelho, StatusRetirada
from varejo.infra.migrations import apply_migrations
from varejo.usecases.estoque_aparelhos import cadastrar_aparelho, consultar_imei
from varejo.usecases.retirada_pecas import (
    adicionar_peca_retirada,
    cancelar_retirada,
    finalizar_retirada,
    iniciar_desmonte,
    listar_pecas_estoque,
    listar_retiradas,
    obter_retirada,
    remover_peca_retirada,
    solicitar_retirada,
    validar_custo,
)

AGORA = datetime(2025, 3, 10, 11, 0)
IMEI = "352099001761481"


def _setup_db(tmp_path):
    db = str(tmp_path / "retirada.db")
    apply_migrations(db)
    cadastrar_aparelho(IMEI, "Apple", "iPhone 11", "LOJA-CENTRO", Decimal("1000"), db_path=db, agora=AGORA)
    return db


def test_retirada_completa_gera_pecas(tmp_path):
    db = _setup_db(tmp_path)
    retirada = solicitar_retirada(IMEI, "Tela trincada sem conserto", "estoque",
                                  [PecaRetirada("Tela", Decimal("600")),
                                   PecaRetirada("Bateria", Decimal("150"), 2)],
                                  db_path=db, agora=AGORA)
    assert retirada["id"] == "RET-2025-0001"
    assert retirada["status"] == StatusRetirada.PENDENTE
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.EM_DESMONTE

    with pytest.raises(ImeiIndisponivel):
        solicitar_retirada(IMEI, "de novo", "estoque", db_path=db)

    validacao = validar_custo(retirada["id"], db)
    assert validacao["soma_pecas"] == Decimal("900.00")
    assert validacao["valido"] is False

    adicionar_peca_retirada(retirada["id"], {"nome": "Câmera", "valor": "200"}, "estoque", db_path=db, agora=AGORA)
    assert validar_custo(retirada["id"], db)["valido"] is True

    with pytest.raises(RegraViolada):
        finalizar_retirada(retirada["id"], "tecnico", db_path=db)
    r = iniciar_desmonte(retirada["id"], "Carlos", db_path=db, agora=AGORA)
    assert r["status"] == StatusRetirada.EM_DESMONTE
    assert r["tecnico"] == "Carlos"

    r = finalizar_retirada(retirada["id"], "Carlos", db_path=db, agora=AGORA)
    assert r["status"] == StatusRetirada.CONCLUIDA
    assert r["pecas_geradas"] == ["PEC-0001", "PEC-0002", "PEC-0003"]
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.DESMONTADO

    pecas = {p["descricao"]: p for p in listar_pecas_estoque("LOJA-CENTRO", db)}
    assert pecas["Bateria"]["quantidade"] == 2
    assert Decimal(pecas["Tela"]["valor_recomendado"]) == Decimal("900.00")
    assert pecas["Câmera"]["origem_ref"] == retirada["id"]

    with pytest.raises(RegraViolada):
        adicionar_peca_retirada(retirada["id"], PecaRetirada("Alto-falante", Decimal("30")), db_path=db)
    with pytest.raises(TransicaoInvalida):
        cancelar_retirada(retirada["id"], "gestor", db_path=db)


def test_retirada_sem_pecas_nao_finaliza(tmp_path):
    db = _setup_db(tmp_path)
    retirada = solicitar_retirada(IMEI, "Sem conserto", "estoque", db_path=db, agora=AGORA)
    item = adicionar_peca_retirada(retirada["id"], PecaRetirada("Tela", Decimal("600")), db_path=db, agora=AGORA)
    remover_peca_retirada(retirada["id"], item, db_path=db, agora=AGORA)
    iniciar_desmonte(retirada["id"], "Carlos", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        finalizar_retirada(retirada["id"], "Carlos", db_path=db, agora=AGORA)
    assert obter_retirada(retirada["id"], db)["itens"] == []


def test_cancelar_devolve_aparelho(tmp_path):
    db = _setup_db(tmp_path)
    retirada = solicitar_retirada(IMEI, "Avaliar", "estoque", [PecaRetirada("Tela", Decimal("600"))],
                                  db_path=db, agora=AGORA)
    r = cancelar_retirada(retirada["id"], "gestor", "Cliente quer comprar", db_path=db, agora=AGORA)
    assert r["status"] == StatusRetirada.CANCELADA
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.DISPONIVEL
    assert listar_retiradas(StatusRetirada.CANCELADA, db)[0]["id"] == retirada["id"]
    assert listar_pecas_estoque(db_path=db) == []


@pytest.mark.parametrize(
    "peca",
    [{"nome": "", "valor": "10"}, {"nome": "Tela", "valor": "0"}, {"nome": "Tela", "valor": "10", "quantidade": 0}],
)
def test_peca_invalida(tmp_path, peca):
    db = _setup_db(tmp_path)
    with pytest.raises(RegraViolada):
        solicitar_retirada(IMEI, "x", "estoque", [peca], db_path=db)


def test_quantidade_zero_nao_vira_um(tmp_path):
    db = _setup_db(tmp_path)
    retirada = solicitar_retirada(IMEI, "x", "estoque", [{"nome": "Tela", "valor": "10"}], db_path=db, agora=AGORA)
    assert obter_retirada(retirada["id"], db)["itens"][0]["quantidade"] == 1
    with pytest.raises(RegraViolada):
        adicionar_peca_retirada(retirada["id"], {"nome": "Bateria", "valor": "10", "quantidade": 0}, db_path=db)
    assert len(obter_retirada(retirada["id"], db)["itens"]) == 1
