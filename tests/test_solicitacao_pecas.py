from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada, TransicaoInvalida
from varejo.domain.models import (
    ORIGEM_SOLICITACAO,
    ContaRazao,
    StatusLotePecas,
    StatusNotaAssistencia,
    StatusOS,
    StatusSolicitacao,
)
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import PecaEstoqueRepo
from varejo.usecases.financeiro import balancete, cadastrar_conta, saldo_conta
from varejo.usecases.notas_assistencia import (
    finalizar_nota_assistencia,
    listar_notas_assistencia,
    obter_nota_assistencia,
)
from varejo.usecases.ordens_servico import abrir_os, cancelar_os, obter_os
from varejo.usecases.solicitacao_pecas import (
    aprovar_solicitacao,
    criar_lote_pecas,
    enviar_lote_pecas,
    listar_lotes_pecas,
    listar_solicitacoes,
    obter_lote_pecas,
    obter_solicitacao,
    rejeitar_solicitacao,
    solicitar_peca,
)

AGORA = datetime(2025, 3, 10, 9, 0)
LOJA = "LOJA-CENTRO"


def _setup_db(tmp_path):
    db = str(tmp_path / "solicitacao.db")
    apply_migrations(db)
    cadastrar_conta("Caixa Centro", "Caixa", LOJA, Decimal("5000"), db_path=db, agora=AGORA)
    abrir_os("Maria", LOJA, "ASSISTÊNCIA", "Tela quebrada", tecnico="Carlos", modelo="iPhone 13",
             db_path=db, agora=AGORA)
    abrir_os("João", LOJA, "ASSISTÊNCIA", "Não carrega", tecnico="Carlos", modelo="Galaxy S21",
             db_path=db, agora=AGORA)
    return db


def test_solicitacao_ate_recebimento_da_peca(tmp_path):
    db = _setup_db(tmp_path)
    sol = solicitar_peca("OS-2025-0001", "Tela iPhone 13", 1, "Tela trincada", "Carlos", db_path=db, agora=AGORA)
    assert sol["id"] == "SOL-001"
    assert sol["status"] == StatusSolicitacao.PENDENTE
    assert sol["modelo_imei"] == "iPhone 13"
    assert obter_os("OS-2025-0001", db)["status"] == StatusOS.AGUARDANDO_PECA

    solicitar_peca("OS-2025-0001", "Bateria iPhone 13", 2, db_path=db, agora=AGORA)
    solicitar_peca("OS-2025-0002", "Conector de carga", db_path=db, agora=AGORA)

    aprovada = aprovar_solicitacao("SOL-001", "Fornecedor A", "350", "compras", db_path=db, agora=AGORA)
    assert aprovada["status"] == StatusSolicitacao.APROVADA
    assert aprovada["valor_peca"] == Decimal("350.00")
    aprovar_solicitacao("SOL-002", "Fornecedor A", Decimal("80"), "compras", db_path=db, agora=AGORA)
    aprovar_solicitacao("SOL-003", "Fornecedor B", Decimal("50"), "compras", db_path=db, agora=AGORA)

    with pytest.raises(RegraViolada):
        criar_lote_pecas("Fornecedor A", ["SOL-001", "SOL-003"], "compras", db_path=db, agora=AGORA)
    assert listar_lotes_pecas(db_path=db) == []

    rejeitada = rejeitar_solicitacao("SOL-003", "compras", "Sem estoque no fornecedor", db_path=db, agora=AGORA)
    assert rejeitada["status"] == StatusSolicitacao.REJEITADA
    assert obter_os("OS-2025-0002", db)["status"] == StatusOS.EM_SERVICO

    lote = criar_lote_pecas("Fornecedor A", ["SOL-001", "SOL-002"], "compras", db_path=db, agora=AGORA)
    assert lote["id"] == "LOTE-001"
    assert lote["valor_total"] == Decimal("510.00")
    with pytest.raises(RegraViolada):
        rejeitar_solicitacao("SOL-001", "compras", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        criar_lote_pecas("Fornecedor A", ["SOL-002"], "compras", db_path=db, agora=AGORA)

    sla = {s["id"]: s["sla_dias"] for s in listar_solicitacoes(hoje=datetime(2025, 3, 15), db_path=db)}
    assert sla == {"SOL-001": 5, "SOL-002": 5, "SOL-003": None}

    enviado = enviar_lote_pecas("LOTE-001", "compras", db_path=db, agora=AGORA)
    assert enviado["status"] == StatusLotePecas.ENVIADO
    assert enviado["nota"]["id"] == "NOTA-ASS-001"
    nota = obter_nota_assistencia("NOTA-ASS-001", db)
    assert nota["origem"] == ORIGEM_SOLICITACAO
    assert Decimal(nota["valor_total"]) == Decimal("510.00")
    assert [(i["item_ref"], i["quantidade"]) for i in nota["itens"]] == [("SOL-001", 1), ("SOL-002", 2)]
    assert [s["status"] for s in obter_lote_pecas("LOTE-001", db)["solicitacoes"]] == [StatusSolicitacao.ENVIADA] * 2
    assert [n["id"] for n in listar_notas_assistencia(StatusNotaAssistencia.PENDENTE, db_path=db)] == ["NOTA-ASS-001"]

    paga = finalizar_nota_assistencia("NOTA-ASS-001", "CTA-001", "financeiro", "Pix", db_path=db, agora=AGORA)
    assert paga["status"] == StatusNotaAssistencia.CONCLUIDO
    assert paga["pecas_geradas"] == ["PEC-0001", "PEC-0002"]
    assert saldo_conta(ContaRazao.ESTOQUE, db) == Decimal("510.00")
    assert saldo_conta("CTA-001", db) == Decimal("4490.00")
    assert saldo_conta(ContaRazao.FORNECEDORES, db) == Decimal("0.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")

    with connect(db) as c:
        bateria = PecaEstoqueRepo(c).get("PEC-0002")
    assert bateria["origem"] == ORIGEM_SOLICITACAO
    assert bateria["origem_ref"] == "SOL-002"
    assert bateria["quantidade"] == 2
    assert Decimal(bateria["valor_recomendado"]) == Decimal("120.00")

    assert obter_lote_pecas("LOTE-001", db)["status"] == StatusLotePecas.FINALIZADO
    recebida = obter_solicitacao("SOL-001", db)
    assert recebida["status"] == StatusSolicitacao.RECEBIDA
    assert recebida["peca_estoque_id"] == "PEC-0001"
    assert obter_os("OS-2025-0001", db)["status"] == StatusOS.EM_SERVICO

    with pytest.raises(TransicaoInvalida):
        finalizar_nota_assistencia("NOTA-ASS-001", "CTA-001", "financeiro", db_path=db, agora=AGORA)


def test_solicitacao_exige_os_ativa_e_quantidade(tmp_path):
    db = _setup_db(tmp_path)
    with pytest.raises(RegistroNaoEncontrado):
        solicitar_peca("OS-2025-0099", "Tela", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        solicitar_peca("OS-2025-0001", "Tela", 0, db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        solicitar_peca("OS-2025-0001", " ", db_path=db, agora=AGORA)

    cancelar_os("OS-2025-0002", "gestor", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        solicitar_peca("OS-2025-0002", "Conector", db_path=db, agora=AGORA)
    assert listar_solicitacoes(db_path=db) == []


def test_aprovacao_exige_fornecedor_e_valor(tmp_path):
    db = _setup_db(tmp_path)
    solicitar_peca("OS-2025-0001", "Tela", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        aprovar_solicitacao("SOL-001", "", "100", "compras", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        aprovar_solicitacao("SOL-001", "Fornecedor A", "0", "compras", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        criar_lote_pecas("Fornecedor A", ["SOL-001"], "compras", db_path=db, agora=AGORA)
    assert obter_solicitacao("SOL-001", db)["status"] == StatusSolicitacao.PENDENTE
