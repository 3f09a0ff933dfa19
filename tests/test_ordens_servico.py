from datetime import datetime
from decimal import Decimal

import pytest

from varejo.domain.erros import RegraViolada, TransicaoInvalida
from varejo.domain.models import ContaRazao, PecaOS, StatusAparelho, StatusOS
from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import PecaEstoqueRepo
from varejo.usecases.estoque_aparelhos import cadastrar_aparelho, consultar_imei
from varejo.usecases.financeiro import balancete, cadastrar_conta, saldo_conta
from varejo.usecases.ordens_servico import (
    abrir_os,
    adicionar_peca_os,
    alterar_status_os,
    cancelar_os,
    concluir_os,
    historico_cliente,
    listar_os,
    obter_os,
    registrar_pagamento_os,
)

AGORA = datetime(2025, 3, 10, 9, 30)
IMEI = "352099001761481"


def _setup_db(tmp_path):
    db = str(tmp_path / "os.db")
    apply_migrations(db)
    cadastrar_conta("Pix Centro", "Pix", "LOJA-CENTRO", db_path=db, agora=AGORA)
    cadastrar_aparelho(IMEI, "Apple", "iPhone 13", "LOJA-CENTRO", Decimal("2500"), db_path=db, agora=AGORA)
    with connect(db) as c:
        PecaEstoqueRepo(c).insert({
            "id": "PEC-0001", "descricao": "Bateria iPhone 13", "loja_id": "LOJA-CENTRO", "quantidade": 1,
            "valor_custo": Decimal("150.00"), "valor_recomendado": Decimal("225.00"),
            "origem": "Retirada de Peça", "data_entrada": "2025-03-01T10:00:00",
        })
    return db


def _peca_estoque(db):
    with connect(db) as c:
        return PecaEstoqueRepo(c).get("PEC-0001")


def test_os_completa(tmp_path):
    db = _setup_db(tmp_path)
    ordem = abrir_os("Maria", "LOJA-CENTRO", "ASSISTÊNCIA", "Troca de tela e bateria", imei=IMEI,
                     db_path=db, agora=AGORA)
    assert ordem["id"] == "OS-2025-0001"
    assert ordem["modelo"] == "iPhone 13"
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.EM_ASSISTENCIA
    with pytest.raises(RegraViolada):
        abrir_os("Maria", "LOJA-CENTRO", "ASSISTÊNCIA", "Outra", imei=IMEI, db_path=db)

    o = adicionar_peca_os(ordem["id"], PecaOS("Tela", Decimal("800"), percentual=Decimal("10"), custo=Decimal("400")),
                          db_path=db, agora=AGORA)
    assert o["valor_total"] == Decimal("720.00")
    o = adicionar_peca_os(ordem["id"], {"descricao": "Bateria", "valor": "300", "peca_estoque_id": "PEC-0001"},
                          db_path=db, agora=AGORA)
    assert o["valor_total"] == Decimal("1020.00")
    assert o["custo_total"] == Decimal("550.00")
    assert _peca_estoque(db)["quantidade"] == 0
    with pytest.raises(RegraViolada):
        adicionar_peca_os(ordem["id"], {"descricao": "Bateria", "valor": "300", "peca_estoque_id": "PEC-0001"},
                          db_path=db)

    with pytest.raises(RegraViolada):
        registrar_pagamento_os(ordem["id"], "Pix", "1020.01", db_path=db)
    registrar_pagamento_os(ordem["id"], "Pix", "500", db_path=db, agora=AGORA)
    alterar_status_os(ordem["id"], StatusOS.EM_SERVICO, "tecnico", db_path=db, agora=AGORA)
    with pytest.raises(RegraViolada):
        concluir_os(ordem["id"], "tecnico", db_path=db)
    registrar_pagamento_os(ordem["id"], "Pix", "520", db_path=db, agora=AGORA)

    o = concluir_os(ordem["id"], "tecnico", db_path=db, agora=AGORA)
    assert o["status"] == StatusOS.CONCLUIDA
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.DISPONIVEL
    assert saldo_conta("CTA-001", db) == Decimal("1020.00")
    assert saldo_conta(ContaRazao.CMV, db) == Decimal("150.00")
    assert balancete(db)["diferenca"] == Decimal("0.00")

    detalhe = obter_os(ordem["id"], db)
    assert len(detalhe["pecas"]) == 2
    assert len(detalhe["pagamentos"]) == 2
    with pytest.raises(RegraViolada):
        registrar_pagamento_os(ordem["id"], "Pix", "1", db_path=db)


def test_concluir_exige_em_servico(tmp_path):
    db = _setup_db(tmp_path)
    ordem = abrir_os("João", "LOJA-CENTRO", "TROCA", "Avaliação", db_path=db, agora=AGORA)
    with pytest.raises(TransicaoInvalida):
        concluir_os(ordem["id"], "tecnico", db_path=db)
    alterar_status_os(ordem["id"], StatusOS.AGUARDANDO_PECA, db_path=db, agora=AGORA)
    with pytest.raises(TransicaoInvalida):
        alterar_status_os(ordem["id"], StatusOS.CONCLUIDA, db_path=db)


def test_cancelar_estorna_e_devolve_pecas(tmp_path):
    db = _setup_db(tmp_path)
    ordem = abrir_os("Maria", "LOJA-CENTRO", "ASSISTÊNCIA", "Bateria", imei=IMEI, db_path=db, agora=AGORA)
    adicionar_peca_os(ordem["id"], {"descricao": "Bateria", "valor": "300", "peca_estoque_id": "PEC-0001"},
                      db_path=db, agora=AGORA)
    registrar_pagamento_os(ordem["id"], "Pix", "200", db_path=db, agora=AGORA)

    o = cancelar_os(ordem["id"], "gestor", "Cliente desistiu", db_path=db, agora=AGORA)
    assert o["status"] == StatusOS.CANCELADA
    assert _peca_estoque(db)["quantidade"] == 1
    assert saldo_conta("CTA-001", db) == Decimal("0.00")
    assert saldo_conta(ContaRazao.RECEITA_SERVICOS, db) == Decimal("0.00")
    assert consultar_imei(IMEI, db)["status"] == StatusAparelho.DISPONIVEL


def test_listar_com_sla_e_historico(tmp_path):
    db = _setup_db(tmp_path)
    abrir_os("Maria", "LOJA-CENTRO", "ASSISTÊNCIA", "Tela", db_path=db, agora=datetime(2025, 3, 1, 9, 0))
    abrir_os("maria", "LOJA-CENTRO", "TROCA", "Troca", db_path=db, agora=datetime(2025, 3, 5, 9, 0))
    abrir_os("Pedro", "LOJA-NORTE", "GARANTIA", "Garantia", db_path=db, agora=datetime(2025, 3, 6, 9, 0))

    ordens = listar_os(loja_id="LOJA-CENTRO", db_path=db, hoje=datetime(2025, 3, 11))
    assert [o["sla_dias"] for o in ordens] == [10, 6]
    assert [o["id"] for o in historico_cliente("MARIA", db_path=db)] == ["OS-2025-0002", "OS-2025-0001"]
    with pytest.raises(RegraViolada):
        abrir_os("Maria", "LOJA-CENTRO", "BALCÃO", "x", db_path=db)
