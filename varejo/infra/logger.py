# varejo/infra/logger.py
"""
Sistema de logging para as operações de varejo.

Este módulo configura e fornece loggers para registrar as operações
críticas do sistema: notas de entrada, vendas, assistência (OS, garantias,
retirada de peças), financeiro e operações no banco de dados.
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = os.environ.get("VAREJO_LOG", "0") == "1"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O arquivo só é aberto na primeira mensagem (delay=True), então importar
    este módulo não cria arquivos quando o logging está desabilitado.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging

    Returns:
        Logger configurado
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


LOGS_DIR = Path(os.environ.get("VAREJO_LOGS_DIR", Path(__file__).parent.parent / "logs"))

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "notas": LOGS_DIR / "notas.log",
    "vendas": LOGS_DIR / "vendas.log",
    "assistencia": LOGS_DIR / "assistencia.log",
    "financeiro": LOGS_DIR / "financeiro.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

_loggers: Dict[str, logging.Logger] = {}


def _logger(kind: str) -> logging.Logger:
    """Retorna (criando na primeira vez) o logger de arquivo de `kind`."""
    if kind not in _loggers:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        _loggers[kind] = setup_logger(f"varejo.{kind}", str(LOG_FILES[kind]))
    return _loggers[kind]


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (nota_pagamento, venda_finalizar, ...)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not ENABLE_LOGGING:
        return
    if error:
        _logger("transactions").error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        _logger("transactions").info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")


def log_evento(area: str, action: str, ref: str, **kwargs) -> None:
    """
    Log de negócio por área (notas, vendas, assistencia, financeiro).

    Args:
        area: Área do log
        action: Ação realizada (criar, pagar, conferir, reservar, ...)
        ref: Identificador do registro afetado
        **kwargs: Dados adicionais
    """
    if not ENABLE_LOGGING:
        return
    log_data = {"ref": ref, **kwargs}
    _logger(area).info(f"{area.upper()}_{action.upper()}: {log_data}")


def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    if not ENABLE_LOGGING:
        return
    log_data = {
        "table": table,
        "operation": operation,
        "affected_rows": affected_rows,
        **kwargs
    }
    _logger("database").info(f"DB_{operation}: {log_data}")


def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not ENABLE_LOGGING:
        return
    logger = _logger("system")
    log_method = getattr(logger, level.lower(), logger.info)
    log_data = {"event": event, "details": details or {}}
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")


def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """Log para importação/exportação de planilhas e CSV."""
    if not ENABLE_LOGGING:
        return
    log_data = {
        "operation": operation,
        "file_path": file_path,
        "rows_processed": rows_processed,
        **kwargs
    }
    _logger("system").info(f"FILE_{operation.upper()}: {log_data}")


def get_log_summary(log_type: str = "transactions", lines: int = 100) -> str:
    """
    Obtém as linhas mais recentes de um log.

    Args:
        log_type: Tipo de log (chave de LOG_FILES)
        lines: Número de linhas a retornar
    """
    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    with open(log_file, 'r', encoding='utf-8') as f:
        all_lines = f.readlines()
    return ''.join(all_lines[-lines:])


@contextmanager
def operacao(nome: str, dados: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """
    Envolve um caso de uso: registra início, sucesso ou erro e repropaga.

    O chamador pode preencher `ctx["resultado"]` para que o resultado
    apareça no log de transações.
    """
    log_system_event(f"{nome}_start", dados)
    ctx: Dict[str, Any] = {}
    try:
        yield ctx
    except Exception as e:
        log_transaction(nome, dados, error=str(e))
        log_system_event(f"{nome}_error", {**dados, "error": str(e)}, level="error")
        raise
    log_transaction(nome, dados, result=ctx.get("resultado"))
    log_system_event(f"{nome}_success", dados)
