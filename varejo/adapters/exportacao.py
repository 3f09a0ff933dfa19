# varejo/adapters/exportacao.py
"""
Exportação CSV (pandas) das listagens operacionais:
OS, garantias, fluxo de vendas, acessórios e parcelas de fiado.

Valores monetários saem como texto com duas casas (Decimal -> str) para
não perder precisão na planilha.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from varejo.config import DB_PATH
from varejo.infra.logger import log_file_operation
from varejo.usecases.acessorios import listar_acessorios
from varejo.usecases.fiado import listar_parcelas
from varejo.usecases.garantias import listar_garantias
from varejo.usecases.ordens_servico import listar_os
from varejo.usecases.vendas import listar_vendas


COLUNAS_OS = ["id", "cliente", "telefone", "loja_id", "setor", "tecnico", "imei", "modelo", "status",
              "valor_total", "custo_total", "valor_pago", "data_abertura", "data_conclusao", "sla_dias"]
COLUNAS_GARANTIAS = ["id", "imei", "modelo", "cliente", "loja_id", "venda_id", "tipo", "meses",
                     "data_inicio", "data_fim", "status"]
COLUNAS_VENDAS = ["id", "loja_id", "vendedor", "cliente", "status", "tipo_operacao", "subtotal",
                  "total_acessorios", "total_trade_in", "taxa_entrega", "valor_garantia_estendida", "total",
                  "valor_custo", "lucro", "margem", "comissao", "saldo_devolver", "data_registro",
                  "data_finalizacao"]
COLUNAS_ACESSORIOS = ["id", "descricao", "categoria", "loja_id", "quantidade", "valor_custo", "valor_recomendado"]
COLUNAS_PARCELAS = ["id", "venda_id", "cliente", "loja_id", "numero", "total_parcelas", "valor",
                    "data_vencimento", "status", "dias_para_vencimento", "data_pagamento", "conta_id"]


def _texto(v: Any) -> Any:
    return str(v) if isinstance(v, Decimal) else v


def _para_csv(linhas: List[Dict[str, Any]], colunas: List[str], path: str, nome: str) -> int:
    df = pd.DataFrame([{c: _texto(r.get(c)) for c in colunas} for r in linhas], columns=colunas)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    log_file_operation(f"export_{nome}", path, len(df))
    return len(df)


def exportar_os_csv(path: str, status: Optional[str] = None, db_path: str = DB_PATH,
                    hoje: Optional[datetime] = None) -> int:
    return _para_csv(listar_os(status, db_path=db_path, hoje=hoje), COLUNAS_OS, path, "os")


def exportar_garantias_csv(path: str, status: Optional[str] = None, db_path: str = DB_PATH) -> int:
    return _para_csv(listar_garantias(status, db_path), COLUNAS_GARANTIAS, path, "garantias")


def exportar_fluxo_vendas_csv(path: str, status: Optional[str] = None, db_path: str = DB_PATH) -> int:
    return _para_csv(listar_vendas(status, db_path=db_path), COLUNAS_VENDAS, path, "vendas")


def exportar_acessorios_csv(path: str, loja_id: Optional[str] = None, db_path: str = DB_PATH) -> int:
    return _para_csv(listar_acessorios(loja_id, db_path), COLUNAS_ACESSORIOS, path, "acessorios")


def exportar_parcelas_csv(path: str, status: Optional[str] = None, db_path: str = DB_PATH,
                          hoje: Optional[datetime] = None) -> int:
    return _para_csv(listar_parcelas(status, hoje=hoje, db_path=db_path), COLUNAS_PARCELAS, path, "parcelas")
