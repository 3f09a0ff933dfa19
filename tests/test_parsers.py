from datetime import date, datetime
from decimal import Decimal

import pytest

from varejo.adapters.parsers import (
    formatar_brl,
    formatar_imei,
    normalizar_imei,
    parse_data,
    parse_valor_brl,
    validar_imei,
)


@pytest.mark.parametrize(
    "txt,esperado",
    [
        ("R$ 1.234,56", Decimal("1234.56")),
        ("350", Decimal("350.00")),
        ("1.500", Decimal("1500.00")),
        ("1234.5", Decimal("1234.50")),
        ("4.500,00", Decimal("4500.00")),
        ("-10,5", Decimal("-10.50")),
        (99.9, Decimal("99.90")),
        (Decimal("7"), Decimal("7.00")),
        ("sem valor", None),
        (None, None),
    ],
)
def test_parse_valor_brl(txt, esperado):
    assert parse_valor_brl(txt) == esperado


def test_formatar_brl():
    assert formatar_brl(Decimal("1234.5")) == "R$ 1.234,50"
    assert formatar_brl(None) == "R$ 0,00"


@pytest.mark.parametrize(
    "txt,digitos,valido",
    [
        ("35-209900-176148-1", "352099001761481", True),
        ("352099001761481", "352099001761481", True),
        ("35 2099 0017", "3520990017", False),
        ("", "", False),
        (None, "", False),
    ],
)
def test_normalizar_e_validar_imei(txt, digitos, valido):
    assert normalizar_imei(txt) == digitos
    assert validar_imei(txt) is valido


def test_formatar_imei_completo_e_parcial():
    assert formatar_imei("352099001761481") == "35-209900-176148-1"
    assert formatar_imei("352099") == "35-2099"


@pytest.mark.parametrize(
    "valor,esperado",
    [
        ("05/03/2025", "2025-03-05"),
        ("2025-03-05", "2025-03-05"),
        ("05-03-2025", "2025-03-05"),
        (date(2025, 3, 5), "2025-03-05"),
        (datetime(2025, 3, 5, 14, 30), "2025-03-05"),
        ("2025-03-05T10:00:00", "2025-03-05"),
        ("31/02/2025", None),
        ("", None),
    ],
)
def test_parse_data(valor, esperado):
    assert parse_data(valor) == esperado
