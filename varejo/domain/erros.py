# varejo/domain/erros.py
"""
Hierarquia de erros de negócio.

Os casos de uso levantam estas exceções; a CLI captura `VarejoError`
e apresenta a mensagem ao operador. Erros inesperados (sqlite, IO)
seguem propagando sem tradução.
"""

from __future__ import annotations


class VarejoError(Exception):
    """Erro de regra de negócio do sistema."""


class RegistroNaoEncontrado(VarejoError, LookupError):
    def __init__(self, entidade: str, chave: str):
        super().__init__(f"{entidade} não encontrado(a): {chave}")
        self.entidade = entidade
        self.chave = chave


class TransicaoInvalida(VarejoError):
    def __init__(self, entidade: str, atual: str, novo: str):
        super().__init__(f"{entidade}: transição inválida de '{atual}' para '{novo}'")
        self.entidade = entidade
        self.atual = atual
        self.novo = novo


class RegraViolada(VarejoError, ValueError):
    """Validação de entrada ou pré-condição de negócio não atendida."""


class EntradaInvalida(RegraViolada):
    def __init__(self, campo: str, valor: object):
        super().__init__(f"Valor inválido para {campo}: {valor!r}")
        self.campo = campo
        self.valor = valor


class ImeiIndisponivel(RegraViolada):
    def __init__(self, imei: str, motivo: str = "não está disponível"):
        super().__init__(f"IMEI {imei} {motivo}")
        self.imei = imei


class PermissaoNegada(VarejoError):
    def __init__(self, perfil: str, acao: str):
        super().__init__(f"Perfil '{perfil}' não pode executar '{acao}'")
        self.perfil = perfil
        self.acao = acao
