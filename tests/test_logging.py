import pytest

from varejo.domain.erros import RegraViolada
from varejo.infra import logger


@pytest.fixture
def logs_tmp(tmp_path, monkeypatch):
    arquivos = {nome: tmp_path / f"{nome}.log" for nome in logger.LOG_FILES}
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    monkeypatch.setattr(logger, "LOGS_DIR", tmp_path)
    monkeypatch.setattr(logger, "LOG_FILES", arquivos)
    monkeypatch.setattr(logger, "_loggers", {})
    return arquivos


def test_logging_desabilitado_nao_cria_arquivos(tmp_path, monkeypatch):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "LOGS_DIR", tmp_path / "logs")
    monkeypatch.setattr(logger, "_loggers", {})
    logger.log_evento("vendas", "reservar", "352099001761481", origem="VEN-2025-0001")
    logger.log_system_event("teste")
    assert not (tmp_path / "logs").exists()


def test_log_evento_por_area(logs_tmp):
    logger.log_evento("notas", "pagar", "NE-2025-00001", valor="1500.00")
    logger.log_evento("assistencia", "abrir_os", "OS-2025-0001", setor="GARANTIA")
    assert "NOTAS_PAGAR" in logs_tmp["notas"].read_text(encoding="utf-8")
    assert "'ref': 'OS-2025-0001'" in logs_tmp["assistencia"].read_text(encoding="utf-8")


def test_operacao_registra_sucesso(logs_tmp):
    with logger.operacao("venda_registrar", {"loja": "LOJA-CENTRO"}) as ctx:
        ctx["resultado"] = "VEN-2025-0001"
    transacoes = logs_tmp["transactions"].read_text(encoding="utf-8")
    assert "TRANSACTION_SUCCESS: venda_registrar - Result: VEN-2025-0001" in transacoes
    sistema = logs_tmp["system"].read_text(encoding="utf-8")
    assert "venda_registrar_start" in sistema
    assert "venda_registrar_success" in sistema


def test_operacao_registra_erro_e_propaga(logs_tmp):
    with pytest.raises(RegraViolada):
        with logger.operacao("nota_pagar", {"nota": "NE-2025-00001"}):
            raise RegraViolada("Pagamento excede o valor da nota")
    transacoes = logs_tmp["transactions"].read_text(encoding="utf-8")
    assert "TRANSACTION_FAILED: nota_pagar - Pagamento excede o valor da nota" in transacoes
    assert " - ERROR - " in logs_tmp["system"].read_text(encoding="utf-8")


def test_get_log_summary(logs_tmp):
    assert logger.get_log_summary("database") == "Log database não encontrado."
    for i in range(5):
        logger.log_database_operation("aparelho", "INSERT", 1, imei=f"35209900176148{i}")
    resumo = logger.get_log_summary("database", lines=2)
    assert resumo.count("DB_INSERT") == 2
    assert "352099001761484" in resumo


def test_lancamento_e_reserva_com_logging_habilitado(logs_tmp, tmp_path):
    from datetime import datetime
    from decimal import Decimal

    from varejo.infra.db import connect
    from varejo.infra.migrations import apply_migrations
    from varejo.usecases.estoque_aparelhos import cadastrar_aparelho, reservar_imei
    from varejo.usecases.financeiro import cadastrar_conta

    agora = datetime(2025, 3, 10, 10, 0)
    db = str(tmp_path / "log.db")
    apply_migrations(db)
    cadastrar_conta("Caixa Centro", "Caixa", "LOJA-CENTRO", Decimal("100"), db_path=db, agora=agora)
    financeiro = logs_tmp["financeiro"].read_text(encoding="utf-8")
    assert "FINANCEIRO_LANCAR" in financeiro
    assert "'origem': 'conta:CTA-001'" in financeiro

    cadastrar_aparelho("352099001761481", "Apple", "iPhone 14", "LOJA-CENTRO", Decimal("3000"), db_path=db,
                       agora=agora)
    with connect(db, imediato=True) as c:
        reservar_imei(c, "352099001761481", "VEN-2025-0001", "2025-03-10T10:00:00")
    vendas = logs_tmp["vendas"].read_text(encoding="utf-8")
    assert "VENDAS_RESERVAR" in vendas
    assert "'origem': 'VEN-2025-0001'" in vendas
