from datetime import date, datetime, timedelta
from decimal import Decimal

from varejo.infra.db import connect
from varejo.infra.migrations import apply_migrations
from varejo.infra.repositories import AcessorioRepo
from varejo.usecases.acessorios import cadastrar_acessorio
from varejo.usecases.estoque_aparelhos import cadastrar_aparelho, reservar_imei
from varejo.usecases.notas_entrada import criar_nota
from varejo.usecases.ordens_servico import abrir_os, cancelar_os
from varejo.usecases.relatorios import (
    notas_pendentes,
    os_em_aberto,
    painel_estoque,
    ranking_vendedores,
    relatorio_reposicao_acessorios,
)

AGORA = datetime(2025, 3, 10, 10, 0)


def _setup_db(tmp_path):
    db = str(tmp_path / "relatorios.db")
    apply_migrations(db)
    return db


def test_painel_estoque(tmp_path):
    db = _setup_db(tmp_path)
    cadastrar_aparelho("352099001761481", "Apple", "iPhone 12", "LOJA-CENTRO", "3000", categoria="Seminovo",
                       saude_bateria=80, db_path=db, agora=AGORA)
    cadastrar_aparelho("352099001761499", "Apple", "iPhone 13", "LOJA-CENTRO", "2000", saude_bateria=95,
                       db_path=db, agora=AGORA)
    cadastrar_aparelho("359876543210987", "Apple", "iPhone 14", "LOJA-CENTRO", "1000", db_path=db, agora=AGORA)
    cadastrar_aparelho("351111111111111", "Apple", "iPhone 15", "LOJA-NORTE", "6000", db_path=db, agora=AGORA)
    with connect(db, imediato=True) as c:
        reservar_imei(c, "359876543210987", "VEN-2025-0001", AGORA.isoformat())
    cadastrar_acessorio("Capa", "LOJA-CENTRO", quantidade=4, valor_custo="20", db_path=db, agora=AGORA)

    painel = painel_estoque("LOJA-CENTRO", db)
    assert painel["por_status"]["Disponivel"] == {"quantidade": 2, "valor_custo": Decimal("5000.00")}
    assert painel["por_status"]["Reservado"]["quantidade"] == 1
    assert painel["disponiveis"] == 2
    assert painel["valor_estoque"] == Decimal("5000.00")
    assert painel["valor_acessorios"] == Decimal("80.00")
    assert [a["imei"] for a in painel["bateria_baixa"]] == ["352099001761481"]

    assert painel_estoque(db_path=db)["disponiveis"] == 3


def test_notas_pendentes(tmp_path):
    db = _setup_db(tmp_path)
    columns, rows, msg = notas_pendentes(db)
    assert rows == []
    assert msg == "Nenhuma nota pendente."

    criar_nota("Distribuidora Sul", "LOJA-CENTRO", "Pos", valor_total="6000", qtd_informada=2,
               db_path=db, agora=AGORA)
    columns, rows, msg = notas_pendentes(db)
    assert msg is None
    assert columns[0] == "Nota"
    assert rows[0][0] == "NE-2025-00001"
    assert rows[0][1] == "Distribuidora Sul"
    assert rows[0][8] == 6000.0


def test_os_em_aberto_por_sla(tmp_path):
    db = _setup_db(tmp_path)
    abrir_os("Maria", "LOJA-CENTRO", "ASSISTÊNCIA", "Tela", db_path=db, agora=datetime(2025, 3, 5, 9, 0))
    abrir_os("João", "LOJA-CENTRO", "TROCA", "Bateria", db_path=db, agora=datetime(2025, 3, 1, 9, 0))
    cancelada = abrir_os("Pedro", "LOJA-CENTRO", "GARANTIA", "x", db_path=db, agora=datetime(2025, 2, 1, 9, 0))
    cancelar_os(cancelada["id"], "gestor", db_path=db, agora=AGORA)

    columns, rows, msg = os_em_aberto(hoje=datetime(2025, 3, 11), db_path=db)
    assert msg is None
    assert [(r[1], r[-1]) for r in rows] == [("João", 10), ("Maria", 6)]


def test_ranking_sem_vendas(tmp_path):
    db = _setup_db(tmp_path)
    _, rows, msg = ranking_vendedores(db_path=db)
    assert rows == []
    assert msg == "Nenhuma venda finalizada no período."


def test_reposicao_prioriza_criticos(tmp_path):
    db = _setup_db(tmp_path)
    hoje = date.today()
    repor = cadastrar_acessorio("Carregador", "LOJA-CENTRO", quantidade=8, db_path=db)
    critico = cadastrar_acessorio("Cabo", "LOJA-CENTRO", quantidade=1, db_path=db)
    cadastrar_acessorio("Suporte", "LOJA-CENTRO", quantidade=1, db_path=db)
    with connect(db) as c:
        repo = AcessorioRepo(c)
        for i in range(90):
            dia = (hoje - timedelta(days=i)).isoformat()
            repo.registrar_movimento(repor["id"], "saida", 1, "teste", f"{dia}T12:00:00")
            repo.registrar_movimento(critico["id"], "saida", 1, "teste", f"{dia}T12:00:00")

    columns, rows, msg = relatorio_reposicao_acessorios("LOJA-CENTRO", db)
    assert msg is None
    assert [(r[0], r[3]) for r in rows] == [(critico["id"], "CRITICO"), (repor["id"], "REPOR")]
    assert columns[-1] == "Sugestão"
