# varejo/adapters/planilhas.py
"""
Loaders de planilhas (XLSX) de fornecedores e de catálogo.

Essas funções:
- leem planilhas XLSX usando pandas;
- normalizam cabeçalhos (acentos, variações, sinônimos);
- retornam listas de dicionários com as chaves esperadas pelos casos de uso.

Planilhas suportadas:
- produtos de nota de entrada (tipo, marca, modelo, quantidade, custo unitário);
- catálogo de acessórios (descrição, categoria, quantidade, custo, valor recomendado).
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import pandas as pd

from .parsers import parse_valor_brl


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _safe_get(row, key):
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    val = str(val).strip()
    return val or None


_ALIASES = {
    "tipo": "tipo_produto",
    "tipo produto": "tipo_produto",
    "tipo de produto": "tipo_produto",

    "marca": "marca",
    "fabricante": "marca",

    "modelo": "modelo",
    "produto": "modelo",

    "descricao": "descricao",
    "acessorio": "descricao",
    "item": "descricao",

    "categoria": "categoria",
    "condicao": "categoria",
    "estado": "categoria",

    "cor": "cor",
    "capacidade": "capacidade",
    "armazenamento": "capacidade",

    "quantidade": "quantidade",
    "qtd": "quantidade",
    "qtde": "quantidade",

    "custo": "custo_unitario",
    "custo unitario": "custo_unitario",
    "valor unitario": "custo_unitario",
    "preco custo": "custo_unitario",

    "valor recomendado": "valor_recomendado",
    "preco venda": "valor_recomendado",
    "valor venda": "valor_recomendado",

    "multiplo": "lote_mult",
    "lote": "lote_mult",
    "multiplo compra": "lote_mult",
}


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    new_cols = {col: _ALIASES.get(_slug(col), _slug(col)) for col in df.columns}
    return df.rename(columns=new_cols)


def _read(path: str) -> pd.DataFrame:
    df = pd.read_excel(path, dtype="string")
    return _normalize_columns(df)


def _to_int(val: Optional[str]) -> Optional[int]:
    if val is None:
        return None
    try:
        return int(float(val.replace(",", ".")))
    except ValueError:
        return None


def _tipo_produto(val: Optional[str]) -> str:
    s = _slug(val or "")
    if s.startswith("acess"):
        return "Acessorio"
    return "Aparelho"


def _categoria(val: Optional[str]) -> str:
    s = _slug(val or "")
    if s.startswith("semi") or s in {"usado", "recondicionado"}:
        return "Seminovo"
    return "Novo"


# ---------------------------
# loaders públicos (XLSX)
# ---------------------------

def load_produtos_nota_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de produtos de uma nota de entrada.

    Campos de saída (por linha):
      - tipo_produto: 'Aparelho' | 'Acessorio'
      - marca, modelo, cor, capacidade: str | None
      - categoria: 'Novo' | 'Seminovo'
      - quantidade: int
      - custo_unitario: Decimal

    Linhas sem modelo ou sem quantidade são ignoradas.
    """
    df = _read(path)
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        modelo = _safe_get(row, "modelo") or _safe_get(row, "descricao")
        quantidade = _to_int(_safe_get(row, "quantidade"))
        if not modelo or not quantidade:
            continue
        out.append({
            "tipo_produto": _tipo_produto(_safe_get(row, "tipo_produto")),
            "marca": _safe_get(row, "marca"),
            "modelo": modelo,
            "categoria": _categoria(_safe_get(row, "categoria")),
            "cor": _safe_get(row, "cor"),
            "capacidade": _safe_get(row, "capacidade"),
            "quantidade": quantidade,
            "custo_unitario": parse_valor_brl(_safe_get(row, "custo_unitario")),
        })
    return out


def load_acessorios_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de catálogo de acessórios.

    Campos de saída (por linha):
      - descricao: str
      - categoria: str | None
      - quantidade: int (0 se ausente)
      - custo_unitario: Decimal | None
      - valor_recomendado: Decimal | None
      - lote_mult: int | None
    """
    df = _read(path)
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        descricao = _safe_get(row, "descricao") or _safe_get(row, "modelo")
        if not descricao:
            continue
        out.append({
            "descricao": descricao,
            "categoria": _safe_get(row, "categoria"),
            "quantidade": _to_int(_safe_get(row, "quantidade")) or 0,
            "custo_unitario": parse_valor_brl(_safe_get(row, "custo_unitario")),
            "valor_recomendado": parse_valor_brl(_safe_get(row, "valor_recomendado")),
            "lote_mult": _to_int(_safe_get(row, "lote_mult")),
        })
    return out
