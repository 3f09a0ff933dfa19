"""
Utilidades de parsing para IMEI, valores em reais e datas.

Este módulo interpreta os formatos que chegam do balcão, das planilhas
de fornecedores e da linha de comando: IMEI com ou sem máscara
(ex.: "35-209900-176148-1"), valores monetários no padrão brasileiro
(ex.: "R$ 1.234,56") e datas em dd/mm/aaaa ou ISO.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_NAO_DIGITO = re.compile(r"\D+")
_NUM_BRL_RE = re.compile(r"[-+]?[\d.,]+")


def normalizar_imei(valor: Any) -> str:
    """Mantém apenas os dígitos do IMEI (remove máscara e espaços)."""
    if valor is None:
        return ""
    return _NAO_DIGITO.sub("", str(valor))


def validar_imei(valor: Any) -> bool:
    """IMEI válido tem exatamente 15 dígitos."""
    return len(normalizar_imei(valor)) == 15


def formatar_imei(valor: Any) -> str:
    """Aplica a máscara WW-XXXXXX-YYYYYY-Z.

    Exemplos:
        "352099001761481" -> "35-209900-176148-1"
        "35 2099"         -> "35-2099"  (parcial, enquanto digita)
    """
    d = normalizar_imei(valor)[:15]
    partes = [d[0:2], d[2:8], d[8:14], d[14:15]]
    return "-".join(p for p in partes if p)


def parse_valor_brl(txt: Any) -> Optional[Decimal]:
    """Interpreta valores monetários brasileiros.

    Regras:
    - aceita prefixo "R$" e espaços;
    - com vírgula presente, ponto é separador de milhar ("1.234,56");
    - sem vírgula, um único ponto seguido de 1-2 dígitos é decimal ("1234.5");
    - números (int/float/Decimal) são aceitos diretamente.

    Exemplos:
        "R$ 1.234,56" -> Decimal("1234.56")
        "350"         -> Decimal("350.00")
        "1.500"       -> Decimal("1500.00")

    Returns:
        Decimal com 2 casas, ou None se não houver número reconhecível.
    """
    if txt is None:
        return None
    if isinstance(txt, Decimal):
        return txt.quantize(Decimal("0.01"))
    if isinstance(txt, (int, float)):
        return Decimal(repr(txt) if isinstance(txt, float) else txt).quantize(Decimal("0.01"))
    s = str(txt).strip().replace("R$", "").replace(" ", "")
    m = _NUM_BRL_RE.search(s)
    if not m:
        return None
    num = m.group(0)
    if "," in num:
        num = num.replace(".", "").replace(",", ".")
    elif num.count(".") == 1 and len(num.split(".")[1]) <= 2:
        pass
    else:
        num = num.replace(".", "")
    try:
        return Decimal(num).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def formatar_brl(valor: Any) -> str:
    """Decimal(1234.5) -> 'R$ 1.234,50'."""
    v = Decimal(str(valor or 0)).quantize(Decimal("0.01"))
    txt = f"{v:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {txt}"


def parse_data(valor: Any) -> Optional[str]:
    """Converte dd/mm/aaaa, aaaa-mm-dd, date ou datetime em data ISO."""
    if valor is None:
        return None
    if isinstance(valor, datetime):
        return valor.date().isoformat()
    if isinstance(valor, date):
        return valor.isoformat()
    s = str(valor).strip()
    if not s:
        return None
    for fmt in ("%d/%m/%Y", "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%y"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s).date().isoformat()
    except ValueError:
        return None
