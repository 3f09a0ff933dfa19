from math import isclose

import pytest

from varejo.domain.reposicao import (
    arredonda_multiplo,
    demanda_leadtime,
    estoque_seguranca,
    metricas_demanda,
    ponto_pedido,
    sigma_leadtime,
    status_por_estoque,
    z_from_service_level,
)


def test_z_from_service_level_typical():
    z95 = z_from_service_level(0.95)
    # referência ~1.64485 (tolerância pequena)
    assert isclose(z95, 1.64485, rel_tol=1e-3, abs_tol=1e-3)


@pytest.mark.parametrize("nivel", [0.0, 1.0, 1.5, None])
def test_z_from_service_level_invalido(nivel):
    with pytest.raises(ValueError):
        z_from_service_level(nivel)


def test_demanda_leadtime_e_sigma():
    mu_d, sigma_d = 10.0, 3.0
    mu_t, sigma_t = 6.0, 1.0
    mu_DL = demanda_leadtime(mu_d, mu_t)
    sig_DL = sigma_leadtime(mu_d, sigma_d, mu_t, sigma_t)
    assert isclose(mu_DL, 60.0, rel_tol=1e-9, abs_tol=1e-9)
    # Var = 6*9 + 100*1 = 154
    assert isclose(sig_DL, 154 ** 0.5, rel_tol=1e-9, abs_tol=1e-9)


def test_ss_e_rop():
    z = z_from_service_level(0.95)
    ss = estoque_seguranca(z, 12.4097)
    rop = ponto_pedido(60.0, ss)
    assert ss > 0
    assert rop > 60


def test_metricas_demanda():
    mu, sigma = metricas_demanda([2, 4, 4, 4, 5, 5, 7, 9])
    assert isclose(mu, 5.0)
    assert isclose(sigma, 2.0)
    assert metricas_demanda([]) == (0.0, 0.0)
    assert metricas_demanda([3]) == (3.0, 0.0)


@pytest.mark.parametrize(
    "estoque,ss,rop,esperado",
    [
        (None, 1.0, 2.0, "VERIFICAR"),
        (1.0, 1.0, 5.0, "CRITICO"),
        (4.0, 1.0, 5.0, "REPOR"),
        (6.0, 1.0, 5.0, "OK"),
    ],
)
def test_status_por_estoque(estoque, ss, rop, esperado):
    assert status_por_estoque(estoque, ss, rop) == esperado


def test_arredonda_multiplo():
    assert arredonda_multiplo(7, 5) == 10
    assert arredonda_multiplo(10, 5) == 10
    assert arredonda_multiplo(7.2, None) == 7.2
    assert arredonda_multiplo(None, 5) is None
