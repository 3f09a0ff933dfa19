# varejo/infra/views.py
"""
Criação de views auxiliares para consultas frequentes.

Views criadas:
- vw_razao_partidas:   cada lançamento desdobrado em duas partidas (débito e crédito).
- vw_saldo_contas:     saldo (débitos - créditos) por conta do razão.
- vw_estoque_aparelhos: contagem e custo de aparelhos por loja/status.
- vw_notas_pendentes:  notas de entrada não finalizadas com pendências.
- vw_fiado_aberto:     parcelas de fiado em aberto por cliente.

Obs.:
- Valores monetários estão em TEXT; as views convertem com CAST para
  exibição. Cálculos exatos ficam nos repositórios (Decimal).
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        c.executescript(
            """
            ---------------------------
            -- Partidas do razão
            ---------------------------
            DROP VIEW IF EXISTS vw_razao_partidas;
            CREATE VIEW vw_razao_partidas AS
            SELECT transacao_id, data, historico, conta_debito AS conta,
                   CAST(valor AS REAL) AS debito, 0.0 AS credito, ref_tipo, ref_id
            FROM lancamento
            UNION ALL
            SELECT transacao_id, data, historico, conta_credito AS conta,
                   0.0 AS debito, CAST(valor AS REAL) AS credito, ref_tipo, ref_id
            FROM lancamento;

            ---------------------------
            -- Saldo por conta
            ---------------------------
            DROP VIEW IF EXISTS vw_saldo_contas;
            CREATE VIEW vw_saldo_contas AS
            SELECT conta,
                   ROUND(SUM(debito), 2)                AS total_debito,
                   ROUND(SUM(credito), 2)               AS total_credito,
                   ROUND(SUM(debito) - SUM(credito), 2) AS saldo
            FROM vw_razao_partidas
            GROUP BY conta;

            ---------------------------
            -- Estoque de aparelhos
            ---------------------------
            DROP VIEW IF EXISTS vw_estoque_aparelhos;
            CREATE VIEW vw_estoque_aparelhos AS
            SELECT loja_id,
                   status,
                   COUNT(*)                                 AS quantidade,
                   ROUND(SUM(CAST(valor_custo AS REAL)), 2) AS valor_custo
            FROM aparelho
            GROUP BY loja_id, status;

            ---------------------------
            -- Notas pendentes
            ---------------------------
            DROP VIEW IF EXISTS vw_notas_pendentes;
            CREATE VIEW vw_notas_pendentes AS
            SELECT id, fornecedor, loja_id, tipo_pagamento, status, data_status,
                   CAST(valor_total AS REAL)                                  AS valor_total,
                   CAST(valor_pago AS REAL)                                   AS valor_pago,
                   ROUND(CAST(valor_total AS REAL) - CAST(valor_pago AS REAL), 2) AS valor_pendente,
                   qtd_informada, qtd_conferida
            FROM nota_entrada
            WHERE status <> 'Finalizada';

            ---------------------------
            -- Fiado em aberto
            ---------------------------
            DROP VIEW IF EXISTS vw_fiado_aberto;
            CREATE VIEW vw_fiado_aberto AS
            SELECT cliente,
                   COUNT(*)                           AS parcelas,
                   ROUND(SUM(CAST(valor AS REAL)), 2) AS valor_aberto,
                   MIN(data_vencimento)               AS proximo_vencimento
            FROM parcela_fiado
            WHERE status <> 'Pago'
            GROUP BY cliente;
            """
        )
