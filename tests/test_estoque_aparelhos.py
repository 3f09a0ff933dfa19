from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import ImeiIndisponivel, RegistroNaoEncontrado, RegraViolada
from varejo.domain.models import (
    PARECER_ASSIST_AGUARDANDO_PECA,
    PARECER_ASSIST_AJUSTES,
    PARECER_ESTOQUE_ENCAMINHADO,
    PARECER_ESTOQUE_OK,
    ContaRazao,
    StatusAparelho,
    StatusPendente,
)
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.usecases.estoque_aparelhos import (
    cadastrar_aparelho,
    consultar_imei,
    enviar_para_triagem,
    liberar_produto_pendente,
    listar_aparelhos,
    listar_pendentes,
    movimentar_aparelho,
    registrar_aparelho,
    reservar_imei,
    salvar_parecer_assistencia,
    salvar_parecer_estoque,
)
from varejo.usecases.financeiro import saldo_conta

AGORA = datetime(2025, 3, 10, 10, 0)
IMEI = "352099001761481"
IMEI_SEMINOVO = "359876543210987"


def _setup_db(tmp_path):
    db = str(tmp_path / "estoque.db")
    apply_migrations(db)
    cadastrar_aparelho(IMEI, "Apple", "iPhone 14", "LOJA-CENTRO", "4200", cor="Preto", capacidade="128GB",
                       db_path=db, agora=AGORA)
    return db


def _pendente(db):
    with connect(db) as c:
        aparelho = registrar_aparelho(c, {
            "imei": IMEI_SEMINOVO, "marca": "Apple", "modelo": "iPhone 12", "categoria": "Seminovo",
            "valor_custo": Decimal("1800"), "loja_id": "LOJA-CENTRO", "status": StatusAparelho.EM_TRIAGEM,
            "origem": "Trade-in", "origem_ref": "VEN-2025-0001",
        }, AGORA.isoformat())
        return enviar_para_triagem(c, aparelho, "Trade-in", "VEN-2025-0001", AGORA.isoformat())


def test_cadastro_e_consulta(tmp_path):
    db = _setup_db(tmp_path)
    aparelho = consultar_imei("35-209900-176148-1", db)
    assert aparelho["id"] == "PROD-0001"
    assert aparelho["status"] == StatusAparelho.DISPONIVEL
    assert aparelho["valor_custo"] == "4200.00"
    assert [e["tipo"] for e in aparelho["timeline"]] == ["entrada"]

    with pytest.raises(ImeiIndisponivel):
        cadastrar_aparelho(IMEI, "Apple", "iPhone 14", "LOJA-NORTE", "4200", db_path=db)
    with pytest.raises(RegraViolada):
        cadastrar_aparelho("1234", "Apple", "iPhone 14", "LOJA-CENTRO", "4200", db_path=db)
    with pytest.raises(RegistroNaoEncontrado):
        consultar_imei("351111111111111", db)


def test_imei_inativo_reaproveita_linha(tmp_path):
    db = _setup_db(tmp_path)
    with connect(db) as c:
        c.execute("UPDATE aparelho SET status = 'Vendido' WHERE imei = ?", (IMEI,))
    aparelho = cadastrar_aparelho(IMEI, "Apple", "iPhone 14", "LOJA-NORTE", "3000", categoria="Seminovo",
                                  db_path=db, agora=AGORA)
    assert aparelho["id"] == "PROD-0001"
    assert aparelho["status_anterior"] == StatusAparelho.VENDIDO
    assert len(listar_aparelhos(db_path=db)) == 1


def test_movimentacao_entre_lojas(tmp_path):
    db = _setup_db(tmp_path)
    movimentar_aparelho(IMEI, "LOJA-NORTE", "estoquista", db_path=db, agora=AGORA)
    assert listar_aparelhos("LOJA-NORTE", db_path=db)[0]["imei"] == IMEI
    with pytest.raises(RegraViolada):
        movimentar_aparelho(IMEI, "LOJA-NORTE", "estoquista", db_path=db)

    with connect(db, imediato=True) as c:
        reservar_imei(c, IMEI, "VEN-2025-0001", AGORA.isoformat())
    with pytest.raises(ImeiIndisponivel):
        movimentar_aparelho(IMEI, "LOJA-CENTRO", "estoquista", db_path=db)


def test_reserva_unica(tmp_path):
    db = _setup_db(tmp_path)
    with connect(db, imediato=True) as c:
        aparelho = reservar_imei(c, IMEI, "VEN-2025-0001", AGORA.isoformat())
    assert aparelho["status"] == StatusAparelho.RESERVADO
    assert aparelho["reserva_ref"] == "VEN-2025-0001"
    with pytest.raises(ImeiIndisponivel) as exc:
        with connect(db, imediato=True) as c:
            reservar_imei(c, IMEI, "VEN-2025-0002", AGORA.isoformat())
    assert exc.value.imei == IMEI


def test_triagem_parecer_estoque_ok(tmp_path):
    db = _setup_db(tmp_path)
    pendente = _pendente(db)
    assert pendente["id"] == "PEND-0001"
    assert consultar_imei(IMEI_SEMINOVO, db)["status"] == StatusAparelho.EM_TRIAGEM

    with pytest.raises(RegraViolada):
        liberar_produto_pendente(pendente["id"], "gestor", db_path=db)
    with pytest.raises(RegraViolada):
        salvar_parecer_estoque(pendente["id"], "Tudo certo", "estoquista", db_path=db)
    salvar_parecer_estoque(pendente["id"], PARECER_ESTOQUE_OK, "estoquista", db_path=db, agora=AGORA)

    p = liberar_produto_pendente(pendente["id"], "gestor", db_path=db, agora=AGORA)
    assert p["status_geral"] == StatusPendente.LIBERADO
    aparelho = consultar_imei(IMEI_SEMINOVO, db)
    assert aparelho["status"] == StatusAparelho.DISPONIVEL
    assert aparelho["valor_custo"] == "1800.00"


def test_triagem_com_assistencia_soma_custo(tmp_path):
    db = _setup_db(tmp_path)
    pendente = _pendente(db)
    with pytest.raises(RegraViolada):
        salvar_parecer_assistencia(pendente["id"], PARECER_ASSIST_AJUSTES, "tecnico", db_path=db)

    p = salvar_parecer_estoque(pendente["id"], PARECER_ESTOQUE_ENCAMINHADO, "estoquista", db_path=db, agora=AGORA)
    assert p["status_geral"] == StatusPendente.EM_ANALISE

    p = salvar_parecer_assistencia(pendente["id"], PARECER_ASSIST_AGUARDANDO_PECA, "tecnico",
                                   [{"descricao": "Bateria", "valor": "180"}], db_path=db, agora=AGORA)
    assert p["status_geral"] == StatusPendente.AGUARDANDO_PECA
    with pytest.raises(RegraViolada):
        liberar_produto_pendente(pendente["id"], "gestor", db_path=db)

    p = salvar_parecer_assistencia(pendente["id"], PARECER_ASSIST_AJUSTES, "tecnico",
                                   [{"descricao": "Tampa traseira", "valor": "70"}], db_path=db, agora=AGORA)
    assert p["status_geral"] == StatusPendente.EM_ANALISE
    assert p["custo_assistencia"] == Decimal("250.00")

    liberar_produto_pendente(pendente["id"], "gestor", db_path=db, agora=AGORA)
    assert consultar_imei(IMEI_SEMINOVO, db)["valor_custo"] == "2050.00"
    # 4200 do cadastro manual + 250 de assistência capitalizados
    assert saldo_conta(ContaRazao.ESTOQUE, db) == Decimal("4450.00")
    assert saldo_conta(ContaRazao.AJUSTE_ESTOQUE, db) == Decimal("-4450.00")
    assert listar_pendentes(StatusPendente.LIBERADO, db)[0]["id"] == pendente["id"]
