# varejo/domain/models.py
"""
Modelos (dataclasses) e enumerações de status do domínio.

Observação importante:
- Os casos de uso aceitam dicionários ou estas dataclasses; elas servem
  para tipagem/clareza nas chamadas feitas pela CLI e pelos testes.
- Os status são strings persistidas como estão no banco.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


# -------------------------
# Status
# -------------------------

class StatusAparelho:
    DISPONIVEL = "Disponivel"
    RESERVADO = "Reservado"
    VENDIDO = "Vendido"
    EM_TRIAGEM = "Em Triagem"
    EM_ASSISTENCIA = "Em Assistencia"
    EM_DESMONTE = "Em Desmonte"
    DESMONTADO = "Desmontado"
    EMPRESTADO = "Emprestado"

    # IMEI pode ser recadastrado somente nestes estados
    INATIVOS = (VENDIDO, DESMONTADO)


class StatusNota:
    CRIADA = "Criada"
    AGUARDANDO_PAGAMENTO_INICIAL = "Aguardando Pagamento Inicial"
    PAGAMENTO_PARCIAL = "Pagamento Parcial Realizado"
    PAGAMENTO_CONCLUIDO = "Pagamento Concluido"
    AGUARDANDO_CONFERENCIA = "Aguardando Conferencia"
    CONFERENCIA_PARCIAL = "Conferencia Parcial"
    CONFERENCIA_CONCLUIDA = "Conferencia Concluida"
    AGUARDANDO_PAGAMENTO_FINAL = "Aguardando Pagamento Final"
    COM_DIVERGENCIA = "Com Divergencia"
    FINALIZADA = "Finalizada"


class TipoPagamentoNota:
    ANTECIPADO = "Antecipado"
    PARCIAL = "Parcial"
    POS = "Pos"
    TODOS = (ANTECIPADO, PARCIAL, POS)


class StatusOS:
    ABERTA = "Aberta"
    EM_SERVICO = "Em serviço"
    AGUARDANDO_PECA = "Aguardando Peça"
    CONCLUIDA = "Serviço concluído"
    CANCELADA = "Cancelada"
    ATIVOS = (ABERTA, EM_SERVICO, AGUARDANDO_PECA)


SETORES_OS = ("GARANTIA", "ASSISTÊNCIA", "TROCA")


class StatusGarantia:
    ATIVA = "Ativa"
    EXPIRADA = "Expirada"
    EM_TRATATIVA = "Em Tratativa"
    CONCLUIDA = "Concluída"
    ABERTAS = (ATIVA, EM_TRATATIVA)


class TipoTratativa:
    DIRECIONADO_APPLE = "Direcionado Apple"
    ENCAMINHADO_ASSISTENCIA = "Encaminhado Assistência"
    ASSISTENCIA_EMPRESTIMO = "Assistência + Empréstimo"
    TROCA_DIRETA = "Troca Direta"
    TODOS = (DIRECIONADO_APPLE, ENCAMINHADO_ASSISTENCIA, ASSISTENCIA_EMPRESTIMO, TROCA_DIRETA)


class StatusTratativa:
    EM_ANDAMENTO = "Em Andamento"
    CONCLUIDO = "Concluído"


class StatusRetirada:
    PENDENTE = "Pendente Assistência"
    EM_DESMONTE = "Em Desmonte"
    CONCLUIDA = "Concluída"
    CANCELADA = "Cancelada"
    ATIVOS = (PENDENTE, EM_DESMONTE)


class StatusVenda:
    FEITO_SINAL = "Feito Sinal"
    AGUARDANDO_CONFERENCIA = "Aguardando Conferência"
    CONFERENCIA_GESTOR = "Conferência Gestor"
    RECUSADA_GESTOR = "Recusada - Gestor"
    CONFERENCIA_FINANCEIRO = "Conferência Financeiro"
    DEVOLVIDO_FINANCEIRO = "Devolvido pelo Financeiro"
    PAGAMENTO_DOWNGRADE = "Pagamento Downgrade"
    FINALIZADO = "Finalizado"
    CANCELADA = "Cancelada"
    BLOQUEADOS = (FINALIZADO, CANCELADA)


class StatusParcela:
    PENDENTE = "Pendente"
    PAGO = "Pago"
    VENCIDO = "Vencido"


class StatusPendente:
    PENDENTE_ESTOQUE = "Pendente Estoque"
    EM_ANALISE = "Em Análise Assistência"
    AGUARDANDO_PECA = "Aguardando Peça"
    LIBERADO = "Liberado"
    RETIRADA_PECAS = "Retirada de Peças"


class StatusSolicitacao:
    PENDENTE = "Pendente"
    APROVADA = "Aprovada"
    REJEITADA = "Rejeitada"
    ENVIADA = "Enviada"
    RECEBIDA = "Recebida"


class StatusLotePecas:
    PENDENTE = "Pendente"
    ENVIADO = "Enviado"
    FINALIZADO = "Finalizado"


class StatusNotaAssistencia:
    PENDENTE = "Pendente"
    CONCLUIDO = "Concluído"


class StatusConsignacao:
    ABERTO = "Aberto"
    EM_ACERTO = "Em Acerto"
    AGUARDANDO_PAGAMENTO = "Aguardando Pagamento"
    CONCLUIDO = "Concluido"
    DEVOLVIDO = "Devolvido"
    FINAIS = (CONCLUIDO, DEVOLVIDO)


class StatusItemConsignacao:
    DISPONIVEL = "Disponivel"
    CONSUMIDO = "Consumido"
    EM_PAGAMENTO = "Em Pagamento"
    PAGO = "Pago"
    DEVOLVIDO = "Devolvido"


ORIGEM_CONSIGNACAO = "Consignação"
ORIGEM_SOLICITACAO = "Solicitação de Peça"


PARECER_ESTOQUE_OK = "Análise Realizada – Produto em ótimo estado"
PARECER_ESTOQUE_ENCAMINHADO = "Encaminhado para conferência da Assistência"
PARECERES_ESTOQUE = (PARECER_ESTOQUE_OK, PARECER_ESTOQUE_ENCAMINHADO)

PARECER_ASSIST_CONFERIDO = "Produto conferido"
PARECER_ASSIST_AGUARDANDO_PECA = "Aguardando peça"
PARECER_ASSIST_AJUSTES = "Ajustes realizados"
PARECERES_ASSISTENCIA = (PARECER_ASSIST_CONFERIDO, PARECER_ASSIST_AGUARDANDO_PECA, PARECER_ASSIST_AJUSTES)

TIPOS_CONTA = ("Caixa", "Pix", "Conta Bancária", "Conta Digital")
TIPOS_DESPESA = ("Fixa", "Variável")
MEIO_FIADO = "Fiado"


# -------------------------
# Contas internas do razão
# -------------------------

class ContaRazao:
    """Contas contábeis internas (as contas financeiras usam o id CTA-xxx)."""
    ESTOQUE = "ESTOQUE"
    FORNECEDORES = "FORNECEDORES"
    RECEITA_VENDAS = "RECEITA_VENDAS"
    RECEITA_SERVICOS = "RECEITA_SERVICOS"
    CMV = "CMV"
    CLIENTES_FIADO = "CLIENTES_FIADO"
    DESPESA_COMISSOES = "DESPESA_COMISSOES"
    COMISSOES_A_PAGAR = "COMISSOES_A_PAGAR"
    DEVOLUCOES_CLIENTES = "DEVOLUCOES_CLIENTES"
    DESPESAS_OPERACIONAIS = "DESPESAS_OPERACIONAIS"
    SALDO_INICIAL = "SALDO_INICIAL"
    AJUSTE_ESTOQUE = "AJUSTE_ESTOQUE"  # contrapartida de entradas e saídas manuais de estoque


# -------------------------
# Entradas de casos de uso
# -------------------------

@dataclass
class ProdutoNota:
    """Produto informado numa nota de entrada."""
    tipo_produto: str                  # 'Aparelho' | 'Acessorio'
    marca: str
    modelo: str
    quantidade: int
    custo_unitario: Decimal
    categoria: str = "Novo"            # 'Novo' | 'Seminovo'
    cor: Optional[str] = None
    capacidade: Optional[str] = None


@dataclass
class ItemVenda:
    imei: str
    valor_venda: Decimal


@dataclass
class AcessorioVenda:
    acessorio_id: str
    quantidade: int
    valor_unitario: Decimal


@dataclass
class TradeIn:
    marca: str
    modelo: str
    imei: str
    valor_abatimento: Decimal
    saude_bateria: Optional[int] = None


@dataclass
class PagamentoVenda:
    meio: str                          # 'Pix', 'Cartão', 'Dinheiro', 'Fiado', ...
    valor: Decimal
    conta_id: Optional[str] = None     # obrigatório exceto para Fiado
    parcelas: int = 1
    dia_vencimento: Optional[int] = None


@dataclass
class PecaRetirada:
    nome: str
    valor: Decimal
    quantidade: int = 1


@dataclass
class PecaOS:
    descricao: str
    valor: Decimal
    percentual: Decimal = Decimal("0")
    custo: Optional[Decimal] = None
    peca_estoque_id: Optional[str] = None
    terceirizado: bool = False
    fornecedor: Optional[str] = None


@dataclass
class ItemConsignado:
    """Peça recebida em consignação; entra em `peca_estoque` da loja destino."""
    descricao: str
    quantidade: int
    valor_custo: Decimal
    loja_id: str
    modelo: Optional[str] = None


@dataclass
class NovaVenda:
    loja_id: str
    vendedor: str
    cliente: str
    itens: List[ItemVenda] = field(default_factory=list)
    acessorios: List[AcessorioVenda] = field(default_factory=list)
    trade_ins: List[TradeIn] = field(default_factory=list)
    pagamentos: List[PagamentoVenda] = field(default_factory=list)
    taxa_entrega: Decimal = Decimal("0")
    garantia_estendida: Decimal = Decimal("0")
    sinal: bool = False
    observacoes: Optional[str] = None
