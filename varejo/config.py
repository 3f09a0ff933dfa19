# varejo/config.py
"""
Configurações globais e valores padrão do sistema de operações de varejo.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("VAREJO_DB", os.path.join(os.getcwd(), "varejo.db"))


@dataclass
class RegrasNegocio:
    """Valores padrão das regras de negócio (sobrescritos pela tabela `params`)."""
    tolerancia_divergencia: float = 0.0001  # fração do valor total da nota
    dias_conferencia_parcial: int = 5  # alerta de conferência parcial longa
    dias_status_critico: int = 3  # alerta de nota parada em status crítico
    comissao_loja_fisica: float = 0.10
    comissao_loja_online: float = 0.06
    comissao_garantia: float = 0.10
    lojas_online: Tuple[str, ...] = field(default_factory=lambda: ("LOJA-ONLINE", "LOJA-MATRIZ"))
    markup_peca: float = 1.5  # valor recomendado = custo * markup
    meses_garantia_novo: int = 12
    meses_garantia_seminovo: int = 3
    bateria_minima: int = 85  # saúde de bateria abaixo disso é sinalizada
    nivel_servico: float = 0.95  # reposição de acessórios
    mu_t_dias: float = 7.0  # lead time médio em dias
    sigma_t_dias: float = 2.0  # desvio padrão do lead time


# Instância global dos valores padrão
DEFAULTS = RegrasNegocio()
