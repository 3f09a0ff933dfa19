# varejo/domain/reposicao.py
"""
Fórmulas e políticas de reposição de acessórios (revisão contínua).

Dado o histórico de saídas diárias de um acessório e o lead time do
fornecedor, calculamos estoque de segurança (SS) e ponto de pedido (ROP)
para um nível de serviço alvo, classificamos o status e arredondamos a
sugestão de compra ao múltiplo de lote.

Todas as funções são puras.
"""

from __future__ import annotations

from math import ceil, sqrt
from statistics import mean, pstdev
from typing import Iterable, Optional, Tuple, Union

from scipy.stats import norm


def z_from_service_level(nivel_servico: float) -> float:
    """Retorna o z-score tal que Φ(z) = nivel_servico.

    Args:
        nivel_servico: probabilidade de ciclo sem ruptura (0 < p < 1).
    """
    if nivel_servico is None:
        raise ValueError("nivel_servico deve ser informado")
    if not (0.0 < nivel_servico < 1.0):
        raise ValueError("nivel_servico deve estar entre 0 e 1")
    return float(norm.ppf(nivel_servico))


def metricas_demanda(saidas_diarias: Iterable[float]) -> Tuple[float, float]:
    """Média e desvio padrão populacional da demanda diária."""
    serie = [float(x) for x in saidas_diarias]
    if not serie:
        return 0.0, 0.0
    return mean(serie), (pstdev(serie) if len(serie) > 1 else 0.0)


def demanda_leadtime(mu_d: Union[int, float], mu_t: Union[int, float]) -> float:
    """Demanda esperada durante o lead time (demanda e lead time independentes)."""
    return float(mu_d) * float(mu_t)


def sigma_leadtime(
    mu_d: Union[int, float],
    sigma_d: Union[int, float],
    mu_t: Union[int, float],
    sigma_t: Union[int, float],
) -> float:
    """Desvio padrão da demanda no lead time.

        Var(DL) = mu_t * sigma_d^2 + mu_d^2 * sigma_t^2
    """
    var = float(mu_t) * float(sigma_d) ** 2 + float(mu_d) ** 2 * float(sigma_t) ** 2
    return sqrt(var) if var > 0.0 else 0.0


def estoque_seguranca(z: float, sigma_DL: float) -> float:
    return float(z) * float(sigma_DL)


def ponto_pedido(mu_DL: float, SS: float) -> float:
    return float(mu_DL) + float(SS)


def status_por_estoque(estoque: Optional[float], ss: Optional[float], rop: Optional[float]) -> str:
    """Classifica o acessório pela posição do estoque frente a SS e ROP.

    - algum parâmetro ausente  -> 'VERIFICAR'
    - estoque <= SS            -> 'CRITICO'
    - estoque <= ROP           -> 'REPOR'
    - caso contrário           -> 'OK'
    """
    if estoque is None or ss is None or rop is None:
        return "VERIFICAR"
    if estoque <= ss:
        return "CRITICO"
    if estoque <= rop:
        return "REPOR"
    return "OK"


def arredonda_multiplo(x: Optional[float], mult: Optional[float]) -> Optional[float]:
    """Arredonda `x` para cima ao múltiplo `mult` (lote de compra)."""
    if x is None:
        return None
    if not mult or mult <= 0:
        return float(x)
    return ceil(float(x) / float(mult)) * float(mult)
