# varejo/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (estoque de aparelhos, notas, OS, garantias, retirada,
    vendas, fiado, acessórios, contas e razão)
V2: triggers de imutabilidade da timeline e do razão (lancamento)
V3: índices de consulta
V4: solicitação de peças (lotes e notas de assistência) e consignação
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parâmetros K/V
    """
    CREATE TABLE IF NOT EXISTS params (
        chave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Sequências de identificadores (NE-2025, OS-2025, GAR, ...)
    """
    CREATE TABLE IF NOT EXISTS sequencia (
        prefixo TEXT PRIMARY KEY,
        valor INTEGER NOT NULL
    );
    """,
    # Aparelhos serializados por IMEI
    """
    CREATE TABLE IF NOT EXISTS aparelho (
        id TEXT PRIMARY KEY,
        imei TEXT NOT NULL UNIQUE,
        marca TEXT,
        modelo TEXT,
        cor TEXT,
        capacidade TEXT,
        categoria TEXT DEFAULT 'Novo',          -- 'Novo' | 'Seminovo'
        saude_bateria INTEGER,
        valor_custo TEXT DEFAULT '0.00',
        valor_venda_sugerido TEXT,
        loja_id TEXT,
        status TEXT NOT NULL,
        status_anterior TEXT,
        reserva_ref TEXT,                       -- venda/retirada/tratativa que detém o aparelho
        origem TEXT,                            -- 'Nota de Entrada' | 'Trade-In' | 'Cadastro' | 'Troca Garantia'
        origem_ref TEXT,
        data_entrada TEXT,
        data_atualizacao TEXT
    );
    """,
    # Triagem de produtos pendentes
    """
    CREATE TABLE IF NOT EXISTS produto_pendente (
        id TEXT PRIMARY KEY,
        aparelho_id TEXT NOT NULL,
        imei TEXT,
        origem TEXT,
        origem_ref TEXT,
        loja_id TEXT,
        status_geral TEXT NOT NULL,
        parecer_estoque TEXT,
        parecer_estoque_resp TEXT,
        parecer_estoque_data TEXT,
        parecer_assistencia TEXT,
        parecer_assistencia_resp TEXT,
        parecer_assistencia_data TEXT,
        custo_assistencia TEXT DEFAULT '0.00',
        data_entrada TEXT,
        FOREIGN KEY (aparelho_id) REFERENCES aparelho(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS pendente_peca (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pendente_id TEXT NOT NULL,
        descricao TEXT,
        valor TEXT,
        data TEXT,
        FOREIGN KEY (pendente_id) REFERENCES produto_pendente(id)
    );
    """,
    # Notas de entrada
    """
    CREATE TABLE IF NOT EXISTS nota_entrada (
        id TEXT PRIMARY KEY,
        numero TEXT,
        fornecedor TEXT NOT NULL,
        loja_id TEXT,
        tipo_pagamento TEXT NOT NULL,           -- 'Antecipado' | 'Parcial' | 'Pos'
        tipo_pagamento_bloqueado INTEGER DEFAULT 0,
        status TEXT NOT NULL,
        data_status TEXT,
        valor_total TEXT DEFAULT '0.00',
        valor_total_informado INTEGER DEFAULT 0,
        valor_pago TEXT DEFAULT '0.00',
        valor_conferido TEXT DEFAULT '0.00',
        qtd_informada INTEGER DEFAULT 0,
        qtd_cadastrada INTEGER DEFAULT 0,
        qtd_conferida INTEGER DEFAULT 0,
        responsavel TEXT,
        observacoes TEXT,
        data_criacao TEXT,
        data_ultima_conferencia TEXT,
        data_finalizacao TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_produto (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nota_id TEXT NOT NULL,
        tipo_produto TEXT NOT NULL,             -- 'Aparelho' | 'Acessorio'
        marca TEXT,
        modelo TEXT,
        categoria TEXT DEFAULT 'Novo',
        cor TEXT,
        capacidade TEXT,
        quantidade INTEGER NOT NULL,
        custo_unitario TEXT NOT NULL,
        custo_total TEXT NOT NULL,
        qtd_conferida INTEGER DEFAULT 0,
        status_recebimento TEXT DEFAULT 'Pendente',
        status_conferencia TEXT DEFAULT 'Pendente',
        FOREIGN KEY (nota_id) REFERENCES nota_entrada(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_conferencia (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nota_id TEXT NOT NULL,
        produto_id INTEGER NOT NULL,
        imei TEXT,
        quantidade INTEGER NOT NULL,
        aparelho_id TEXT,
        acessorio_id TEXT,
        responsavel TEXT,
        data TEXT,
        UNIQUE (nota_id, imei),
        FOREIGN KEY (produto_id) REFERENCES nota_produto(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_pagamento (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nota_id TEXT NOT NULL,
        tipo TEXT,                              -- 'inicial' | 'final'
        valor TEXT NOT NULL,
        forma TEXT,
        conta_id TEXT,
        responsavel TEXT,
        transacao_id TEXT,
        data TEXT,
        FOREIGN KEY (nota_id) REFERENCES nota_entrada(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_alerta (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nota_id TEXT NOT NULL,
        tipo TEXT NOT NULL,
        mensagem TEXT,
        data TEXT,
        resolvido INTEGER DEFAULT 0,
        resolvido_por TEXT,
        data_resolucao TEXT,
        FOREIGN KEY (nota_id) REFERENCES nota_entrada(id)
    );
    """,
    # Timeline (somente inclusão - ver V2)
    """
    CREATE TABLE IF NOT EXISTS timeline (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entidade TEXT NOT NULL,                 -- 'nota' | 'os' | 'garantia' | 'venda' | ...
        entidade_id TEXT NOT NULL,
        tipo TEXT NOT NULL,
        descricao TEXT,
        status_anterior TEXT,
        status_novo TEXT,
        impacto_financeiro TEXT,
        responsavel TEXT,
        data TEXT NOT NULL
    );
    """,
    # Ordens de serviço
    """
    CREATE TABLE IF NOT EXISTS ordem_servico (
        id TEXT PRIMARY KEY,
        cliente TEXT NOT NULL,
        telefone TEXT,
        loja_id TEXT,
        tecnico TEXT,
        setor TEXT NOT NULL,                    -- 'GARANTIA' | 'ASSISTÊNCIA' | 'TROCA'
        imei TEXT,
        aparelho_id TEXT,
        modelo TEXT,
        descricao TEXT,
        status TEXT NOT NULL,
        valor_total TEXT DEFAULT '0.00',
        custo_total TEXT DEFAULT '0.00',
        valor_pago TEXT DEFAULT '0.00',
        garantia_id TEXT,
        data_abertura TEXT,
        data_conclusao TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS os_peca (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        os_id TEXT NOT NULL,
        descricao TEXT,
        valor TEXT NOT NULL,
        percentual TEXT DEFAULT '0',
        valor_total TEXT NOT NULL,
        custo TEXT DEFAULT '0.00',
        peca_estoque_id TEXT,
        terceirizado INTEGER DEFAULT 0,
        fornecedor TEXT,
        data TEXT,
        FOREIGN KEY (os_id) REFERENCES ordem_servico(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS os_pagamento (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        os_id TEXT NOT NULL,
        meio TEXT,
        valor TEXT NOT NULL,
        parcelas INTEGER DEFAULT 1,
        conta_id TEXT,
        transacao_id TEXT,
        data TEXT,
        FOREIGN KEY (os_id) REFERENCES ordem_servico(id)
    );
    """,
    # Estoque de peças da assistência
    """
    CREATE TABLE IF NOT EXISTS peca_estoque (
        id TEXT PRIMARY KEY,
        descricao TEXT NOT NULL,
        modelo_origem TEXT,
        loja_id TEXT,
        quantidade INTEGER NOT NULL DEFAULT 0 CHECK (quantidade >= 0),
        valor_custo TEXT,
        valor_recomendado TEXT,
        origem TEXT,
        origem_ref TEXT,
        data_entrada TEXT
    );
    """,
    # Garantias
    """
    CREATE TABLE IF NOT EXISTS garantia (
        id TEXT PRIMARY KEY,
        imei TEXT NOT NULL,
        aparelho_id TEXT,
        modelo TEXT,
        cliente TEXT,
        loja_id TEXT,
        venda_id TEXT,
        tipo TEXT NOT NULL,
        meses INTEGER NOT NULL,
        data_inicio TEXT NOT NULL,
        data_fim TEXT NOT NULL,
        status TEXT NOT NULL,
        data_registro TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tratativa (
        id TEXT PRIMARY KEY,
        garantia_id TEXT NOT NULL,
        tipo TEXT NOT NULL,
        descricao TEXT,
        status TEXT NOT NULL,
        os_id TEXT,
        imei_emprestimo TEXT,
        imei_troca TEXT,
        responsavel TEXT,
        data_abertura TEXT,
        data_conclusao TEXT,
        FOREIGN KEY (garantia_id) REFERENCES garantia(id)
    );
    """,
    # Retirada de peças (desmonte)
    """
    CREATE TABLE IF NOT EXISTS retirada_pecas (
        id TEXT PRIMARY KEY,
        aparelho_id TEXT NOT NULL,
        imei TEXT,
        modelo TEXT,
        custo_aparelho TEXT,
        status TEXT NOT NULL,
        status_aparelho_anterior TEXT,
        loja_id TEXT,
        motivo TEXT,
        responsavel TEXT,
        tecnico TEXT,
        data_solicitacao TEXT,
        data_inicio TEXT,
        data_conclusao TEXT,
        FOREIGN KEY (aparelho_id) REFERENCES aparelho(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS retirada_peca_item (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        retirada_id TEXT NOT NULL,
        nome TEXT NOT NULL,
        valor TEXT NOT NULL,
        quantidade INTEGER NOT NULL DEFAULT 1,
        peca_estoque_id TEXT,
        FOREIGN KEY (retirada_id) REFERENCES retirada_pecas(id)
    );
    """,
    # Vendas com fluxo de conferência
    """
    CREATE TABLE IF NOT EXISTS venda (
        id TEXT PRIMARY KEY,
        loja_id TEXT NOT NULL,
        vendedor TEXT,
        cliente TEXT,
        status TEXT NOT NULL,
        tipo_operacao TEXT DEFAULT 'Venda',     -- 'Venda' | 'Downgrade'
        subtotal TEXT DEFAULT '0.00',
        total_acessorios TEXT DEFAULT '0.00',
        total_trade_in TEXT DEFAULT '0.00',
        taxa_entrega TEXT DEFAULT '0.00',
        valor_garantia_estendida TEXT DEFAULT '0.00',
        total TEXT DEFAULT '0.00',
        valor_custo TEXT DEFAULT '0.00',
        lucro TEXT DEFAULT '0.00',
        margem TEXT DEFAULT '0.00',
        comissao TEXT DEFAULT '0.00',
        saldo_devolver TEXT DEFAULT '0.00',
        sinal INTEGER DEFAULT 0,
        bloqueada INTEGER DEFAULT 0,
        motivo_recusa TEXT,
        motivo_devolucao TEXT,
        conta_devolucao TEXT,
        observacoes TEXT,
        data_registro TEXT,
        data_finalizacao TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS venda_item (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        venda_id TEXT NOT NULL,
        aparelho_id TEXT NOT NULL,
        imei TEXT NOT NULL,
        modelo TEXT,
        categoria TEXT,
        valor_venda TEXT NOT NULL,
        valor_custo TEXT NOT NULL,
        FOREIGN KEY (venda_id) REFERENCES venda(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS venda_acessorio (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        venda_id TEXT NOT NULL,
        acessorio_id TEXT NOT NULL,
        quantidade INTEGER NOT NULL,
        valor_unitario TEXT NOT NULL,
        valor_custo TEXT,
        FOREIGN KEY (venda_id) REFERENCES venda(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS venda_trade_in (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        venda_id TEXT NOT NULL,
        marca TEXT,
        modelo TEXT,
        imei TEXT NOT NULL,
        valor_abatimento TEXT NOT NULL,
        saude_bateria INTEGER,
        aparelho_id TEXT,
        FOREIGN KEY (venda_id) REFERENCES venda(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS venda_pagamento (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        venda_id TEXT NOT NULL,
        meio TEXT NOT NULL,
        valor TEXT NOT NULL,
        conta_id TEXT,
        parcelas INTEGER DEFAULT 1,
        dia_vencimento INTEGER,
        data TEXT,
        FOREIGN KEY (venda_id) REFERENCES venda(id)
    );
    """,
    # Fiado
    """
    CREATE TABLE IF NOT EXISTS parcela_fiado (
        id TEXT PRIMARY KEY,
        venda_id TEXT NOT NULL,
        cliente TEXT,
        loja_id TEXT,
        numero INTEGER NOT NULL,
        total_parcelas INTEGER NOT NULL,
        valor TEXT NOT NULL,
        data_vencimento TEXT NOT NULL,
        status TEXT NOT NULL,
        data_pagamento TEXT,
        conta_id TEXT,
        recebido_por TEXT,
        transacao_id TEXT
    );
    """,
    # Acessórios
    """
    CREATE TABLE IF NOT EXISTS acessorio (
        id TEXT PRIMARY KEY,
        descricao TEXT NOT NULL,
        categoria TEXT,
        loja_id TEXT NOT NULL,
        quantidade INTEGER NOT NULL DEFAULT 0 CHECK (quantidade >= 0),
        valor_custo TEXT DEFAULT '0.00',
        valor_recomendado TEXT,
        lote_mult INTEGER,
        data_cadastro TEXT
    );
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_acessorio_descricao_loja
        ON acessorio (descricao COLLATE NOCASE, loja_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS acessorio_movimento (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        acessorio_id TEXT NOT NULL,
        tipo TEXT NOT NULL,                     -- 'entrada' | 'saida' | 'venda' | 'devolucao'
        quantidade INTEGER NOT NULL,
        ref TEXT,
        data TEXT NOT NULL,
        FOREIGN KEY (acessorio_id) REFERENCES acessorio(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS acessorio_valor_historico (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        acessorio_id TEXT NOT NULL,
        valor_anterior TEXT,
        valor_novo TEXT NOT NULL,
        responsavel TEXT,
        data TEXT NOT NULL,
        FOREIGN KEY (acessorio_id) REFERENCES acessorio(id)
    );
    """,
    # Financeiro
    """
    CREATE TABLE IF NOT EXISTS conta_financeira (
        id TEXT PRIMARY KEY,
        nome TEXT NOT NULL,
        tipo TEXT NOT NULL,                     -- 'Caixa' | 'Pix' | 'Conta Bancária' | 'Conta Digital'
        loja_id TEXT,
        ativa INTEGER DEFAULT 1,
        data_cadastro TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lancamento (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        transacao_id TEXT NOT NULL,
        data TEXT NOT NULL,
        historico TEXT,
        conta_debito TEXT NOT NULL,
        conta_credito TEXT NOT NULL,
        valor TEXT NOT NULL CHECK (CAST(valor AS REAL) > 0),
        ref_tipo TEXT,
        ref_id TEXT,
        conferido INTEGER DEFAULT 0,
        conferido_por TEXT,
        data_conferencia TEXT,
        CHECK (conta_debito <> conta_credito)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS despesa (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tipo TEXT NOT NULL,                     -- 'Fixa' | 'Variável'
        descricao TEXT,
        valor TEXT NOT NULL,
        competencia TEXT,
        conta_id TEXT NOT NULL,
        loja_id TEXT,
        transacao_id TEXT,
        data TEXT
    );
    """,
]

# V2: registros lançados não podem ser alterados nem apagados
SCHEMA_V2: List[str] = [
    """
    CREATE TRIGGER IF NOT EXISTS trg_timeline_sem_update
    BEFORE UPDATE ON timeline
    BEGIN
        SELECT RAISE(ABORT, 'timeline aceita somente inclusão');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_timeline_sem_delete
    BEFORE DELETE ON timeline
    BEGIN
        SELECT RAISE(ABORT, 'timeline aceita somente inclusão');
    END;
    """,
    # Somente as colunas de conferência podem mudar num lançamento
    """
    CREATE TRIGGER IF NOT EXISTS trg_lancamento_sem_update
    BEFORE UPDATE OF transacao_id, data, historico, conta_debito, conta_credito, valor, ref_tipo, ref_id
    ON lancamento
    BEGIN
        SELECT RAISE(ABORT, 'lançamento contábil é imutável; registre um estorno');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_lancamento_sem_delete
    BEFORE DELETE ON lancamento
    BEGIN
        SELECT RAISE(ABORT, 'lançamento contábil é imutável; registre um estorno');
    END;
    """,
]

SCHEMA_V3: List[str] = [
    "CREATE INDEX IF NOT EXISTS ix_timeline_entidade ON timeline (entidade, entidade_id);",
    "CREATE INDEX IF NOT EXISTS ix_lancamento_debito ON lancamento (conta_debito);",
    "CREATE INDEX IF NOT EXISTS ix_lancamento_credito ON lancamento (conta_credito);",
    "CREATE INDEX IF NOT EXISTS ix_lancamento_transacao ON lancamento (transacao_id);",
    "CREATE INDEX IF NOT EXISTS ix_aparelho_status ON aparelho (status, loja_id);",
    "CREATE INDEX IF NOT EXISTS ix_os_imei ON ordem_servico (imei, status);",
    "CREATE INDEX IF NOT EXISTS ix_garantia_imei ON garantia (imei, status);",
    "CREATE INDEX IF NOT EXISTS ix_parcela_venda ON parcela_fiado (venda_id);",
    "CREATE INDEX IF NOT EXISTS ix_acessorio_mov ON acessorio_movimento (acessorio_id, data);",
]

SCHEMA_V4: List[str] = [
    # Solicitação de peças -> lote por fornecedor -> nota de assistência
    """
    CREATE TABLE IF NOT EXISTS solicitacao_peca (
        id TEXT PRIMARY KEY,
        os_id TEXT NOT NULL,
        peca TEXT NOT NULL,
        quantidade INTEGER NOT NULL CHECK (quantidade >= 1),
        justificativa TEXT,
        modelo_imei TEXT,
        loja_id TEXT,
        status TEXT NOT NULL,
        solicitante TEXT,
        fornecedor TEXT,
        valor_peca TEXT,
        responsavel_compra TEXT,
        motivo_rejeicao TEXT,
        lote_id TEXT,
        peca_estoque_id TEXT,
        data_solicitacao TEXT NOT NULL,
        data_aprovacao TEXT,
        data_envio TEXT,
        data_recebimento TEXT,
        FOREIGN KEY (os_id) REFERENCES ordem_servico(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lote_pecas (
        id TEXT PRIMARY KEY,
        fornecedor TEXT NOT NULL,
        status TEXT NOT NULL,
        valor_total TEXT NOT NULL,
        nota_id TEXT,
        responsavel TEXT,
        data_criacao TEXT NOT NULL,
        data_envio TEXT,
        data_finalizacao TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_assistencia (
        id TEXT PRIMARY KEY,
        origem TEXT NOT NULL,
        ref_id TEXT NOT NULL,
        fornecedor TEXT NOT NULL,
        loja_id TEXT,
        valor_total TEXT NOT NULL CHECK (CAST(valor_total AS REAL) > 0),
        status TEXT NOT NULL,
        forma_pagamento TEXT,
        conta_id TEXT,
        responsavel_financeiro TEXT,
        transacao_id TEXT,
        data_criacao TEXT NOT NULL,
        data_conclusao TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS nota_assistencia_item (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        nota_id TEXT NOT NULL,
        peca TEXT NOT NULL,
        quantidade INTEGER NOT NULL CHECK (quantidade >= 1),
        valor_unitario TEXT NOT NULL,
        os_id TEXT,
        item_ref TEXT,
        FOREIGN KEY (nota_id) REFERENCES nota_assistencia(id)
    );
    """,
    # Consignação: peças de terceiros no estoque, pagas conforme o consumo
    """
    CREATE TABLE IF NOT EXISTS lote_consignacao (
        id TEXT PRIMARY KEY,
        fornecedor TEXT NOT NULL,
        responsavel TEXT,
        status TEXT NOT NULL,
        em_acerto INTEGER NOT NULL DEFAULT 0,
        fechado INTEGER NOT NULL DEFAULT 0,
        data_criacao TEXT NOT NULL,
        data_acerto TEXT,
        data_fechamento TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS consignacao_item (
        id TEXT PRIMARY KEY,
        lote_id TEXT NOT NULL,
        peca_id TEXT NOT NULL UNIQUE,
        descricao TEXT NOT NULL,
        modelo TEXT,
        loja_id TEXT,
        valor_custo TEXT NOT NULL,
        quantidade_original INTEGER NOT NULL CHECK (quantidade_original >= 1),
        quantidade_consumida INTEGER NOT NULL DEFAULT 0,
        quantidade_devolvida INTEGER NOT NULL DEFAULT 0,
        quantidade_faturada INTEGER NOT NULL DEFAULT 0,
        quantidade_paga INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL,
        devolvido_por TEXT,
        data_devolucao TEXT,
        CHECK (quantidade_consumida >= 0 AND quantidade_devolvida >= 0),
        CHECK (quantidade_consumida + quantidade_devolvida <= quantidade_original),
        CHECK (quantidade_paga <= quantidade_faturada AND quantidade_faturada <= quantidade_consumida),
        FOREIGN KEY (lote_id) REFERENCES lote_consignacao(id),
        FOREIGN KEY (peca_id) REFERENCES peca_estoque(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS consignacao_consumo (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        item_id TEXT NOT NULL,
        os_id TEXT NOT NULL,
        quantidade INTEGER NOT NULL CHECK (quantidade >= 1),
        tecnico TEXT,
        data TEXT NOT NULL,
        estornado INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (item_id) REFERENCES consignacao_item(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS consignacao_pagamento (
        id TEXT PRIMARY KEY,
        lote_id TEXT NOT NULL,
        nota_id TEXT NOT NULL,
        valor TEXT NOT NULL,
        status TEXT NOT NULL,
        forma_pagamento TEXT,
        responsavel TEXT,
        data TEXT NOT NULL,
        data_pagamento TEXT,
        FOREIGN KEY (lote_id) REFERENCES lote_consignacao(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS ix_solicitacao_os ON solicitacao_peca (os_id, status);",
    "CREATE INDEX IF NOT EXISTS ix_solicitacao_lote ON solicitacao_peca (lote_id);",
    "CREATE INDEX IF NOT EXISTS ix_nota_assist_item ON nota_assistencia_item (nota_id);",
    "CREATE INDEX IF NOT EXISTS ix_consignacao_item_lote ON consignacao_item (lote_id);",
    "CREATE INDEX IF NOT EXISTS ix_consignacao_consumo ON consignacao_consumo (item_id, os_id);",
]


def _apply(conn, scripts: List[str]) -> None:
    for sql in scripts:
        conn.executescript(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply(conn, SCHEMA_V1)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply(conn, SCHEMA_V2)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2

        if ver < 3:
            _apply(conn, SCHEMA_V3)
            conn.execute("PRAGMA user_version = 3;")
            ver = 3

        if ver < 4:
            _apply(conn, SCHEMA_V4)
            conn.execute("PRAGMA user_version = 4;")
            ver = 4
