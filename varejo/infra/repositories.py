# varejo/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Diferente de `ParamsRepo`, que abre sua própria conexão, os repositórios
de negócio recebem uma conexão já aberta: os casos de uso compõem várias
escritas (status, timeline, razão, estoque) numa única transação.

Classes:
- ParamsRepo
- SequenciaRepo
- TimelineRepo
- AparelhoRepo
- PendenteRepo
- NotaRepo
- OSRepo
- PecaEstoqueRepo
- GarantiaRepo
- RetiradaRepo
- SolicitacaoRepo
- LotePecasRepo
- NotaAssistenciaRepo
- ConsignacaoRepo
- VendaRepo
- ParcelaRepo
- AcessorioRepo
- ContaRepo
- RazaoRepo
- DespesaRepo
"""

from __future__ import annotations

import math
import sqlite3
from collections import defaultdict
from dataclasses import asdict, fields, is_dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from varejo.config import DEFAULTS, RegrasNegocio
from varejo.domain.calculos import dinheiro
from varejo.domain.erros import EntradaInvalida
from .db import connect


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    if isinstance(row, sqlite3.Row):
        return dict(row)
    raise TypeError("row must be dict, dataclass or sqlite3.Row")


def _one(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return dict(row) if row else None


def _all(cur) -> List[Dict[str, Any]]:
    return [dict(r) for r in cur.fetchall()]


def _insert(conn, table: str, data: Dict[str, Any]) -> int:
    keys = list(data.keys())
    sql = "INSERT INTO {table} ({cols}) VALUES ({vals})".format(
        table=table,
        cols=",".join(keys),
        vals=",".join(f":{k}" for k in keys),
    )
    return conn.execute(sql, data).lastrowid


def _update(conn, table: str, key: str, key_value: Any, changes: Dict[str, Any]) -> int:
    if not changes:
        return 0
    sets = ",".join(f"{k} = :{k}" for k in changes)
    params = {**changes, "_key": key_value}
    cur = conn.execute(f"UPDATE {table} SET {sets} WHERE {key} = :_key", params)
    return cur.rowcount


class _Tabela:
    """Operações básicas por chave primária `id` sobre uma conexão aberta."""

    tabela = ""

    def __init__(self, conn: sqlite3.Connection):
        self.c = conn

    def get(self, id_: Any) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(f"SELECT * FROM {self.tabela} WHERE id = ?", (id_,)))

    def insert(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, self.tabela, _as_dict(data))

    def update(self, id_: Any, **changes: Any) -> int:
        return _update(self.c, self.tabela, "id", id_, changes)


# -------------------------
# Params
# -------------------------

class ParamsRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO params (chave, valor)
                VALUES (?, ?)
                ON CONFLICT(chave) DO UPDATE SET valor=excluded.valor
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT valor FROM params WHERE chave = ?", (key,)).fetchone()
            return row[0] if row else default

    def get_float(self, key: str, default: float) -> float:
        v = self.get(key, None)
        if v is None:
            return default
        try:
            return float(v)
        except ValueError:
            return default

    def all(self) -> Dict[str, str]:
        with connect(self.db_path) as c:
            return {r[0]: r[1] for r in c.execute("SELECT chave, valor FROM params ORDER BY chave")}

    def regras(self) -> RegrasNegocio:
        """Regras de negócio com os valores da tabela `params` sobre DEFAULTS."""
        salvos = self.all()
        valores: Dict[str, Any] = {}
        for f in fields(RegrasNegocio):
            if f.name in salvos:
                valores[f.name] = converter_param(f.name, salvos[f.name])
        return RegrasNegocio(**valores)

    def definir(self, items: Iterable[Tuple[str, str]]) -> None:
        """Valida cada par contra o tipo da regra antes de gravar."""
        items = list(items)
        for chave, valor in items:
            converter_param(chave, valor)
        self.set_many(items)


def converter_param(chave: str, bruto: str) -> Any:
    """Converte o texto salvo em `params` para o tipo do campo em RegrasNegocio."""
    if chave not in RegrasNegocio.__dataclass_fields__:
        raise EntradaInvalida("parâmetro", chave)
    padrao = getattr(DEFAULTS, chave)
    if isinstance(padrao, tuple):
        return tuple(s.strip().upper() for s in str(bruto).split(",") if s.strip())
    try:
        numero = float(bruto)
    except (TypeError, ValueError):
        raise EntradaInvalida(chave, bruto) from None
    if not math.isfinite(numero) or numero < 0:
        raise EntradaInvalida(chave, bruto)
    return int(numero) if isinstance(padrao, int) else numero


# -------------------------
# Sequências e timeline
# -------------------------

class SequenciaRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.c = conn

    def proximo(self, prefixo: str, inicio: int = 1) -> int:
        self.c.execute(
            """
            INSERT INTO sequencia (prefixo, valor) VALUES (?, ?)
            ON CONFLICT(prefixo) DO UPDATE SET valor = valor + 1
            """,
            (prefixo, inicio),
        )
        return self.c.execute("SELECT valor FROM sequencia WHERE prefixo = ?", (prefixo,)).fetchone()[0]


def gerar_id(conn: sqlite3.Connection, prefixo: str, largura: int, ano: Optional[int] = None, inicio: int = 1) -> str:
    """Gera identificadores como NE-2025-00001 (com ano) ou GAR-0001 (sem ano)."""
    chave = f"{prefixo}-{ano}" if ano else prefixo
    n = SequenciaRepo(conn).proximo(chave, inicio)
    return f"{chave}-{n:0{largura}d}"


class TimelineRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.c = conn

    def registrar(
        self,
        entidade: str,
        entidade_id: str,
        tipo: str,
        descricao: str,
        data: str,
        responsavel: Optional[str] = None,
        status_anterior: Optional[str] = None,
        status_novo: Optional[str] = None,
        impacto_financeiro: Optional[Decimal] = None,
    ) -> int:
        return _insert(self.c, "timeline", {
            "entidade": entidade,
            "entidade_id": entidade_id,
            "tipo": tipo,
            "descricao": descricao,
            "status_anterior": status_anterior,
            "status_novo": status_novo,
            "impacto_financeiro": impacto_financeiro,
            "responsavel": responsavel,
            "data": data,
        })

    def listar(self, entidade: str, entidade_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM timeline WHERE entidade = ? AND entidade_id = ? ORDER BY id",
            (entidade, entidade_id),
        ))


# -------------------------
# Aparelhos e triagem
# -------------------------

class AparelhoRepo(_Tabela):
    tabela = "aparelho"

    def get_by_imei(self, imei: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM aparelho WHERE imei = ?", (imei,)))

    def reservar(self, imei: str, ref: str, agora: str) -> bool:
        """Disponivel -> Reservado de forma condicional; False se outro já detém o IMEI."""
        cur = self.c.execute(
            """
            UPDATE aparelho
               SET status = 'Reservado', status_anterior = status, reserva_ref = ?, data_atualizacao = ?
             WHERE imei = ? AND status = 'Disponivel'
            """,
            (ref, agora, imei),
        )
        return cur.rowcount == 1

    def trocar_status(self, id_: str, de: Iterable[str], para: str, ref: Optional[str], agora: str) -> bool:
        """Muda o status somente se o atual estiver em `de` (compare-and-set)."""
        de = tuple(de)
        marks = ",".join("?" for _ in de)
        cur = self.c.execute(
            f"""
            UPDATE aparelho
               SET status = ?, status_anterior = status, reserva_ref = ?, data_atualizacao = ?
             WHERE id = ? AND status IN ({marks})
            """,
            (para, ref, agora, id_, *de),
        )
        return cur.rowcount == 1

    def listar(self, loja_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM aparelho WHERE 1=1"
        params: List[Any] = []
        if loja_id:
            sql += " AND loja_id = ?"
            params.append(loja_id)
        if status:
            sql += " AND status = ?"
            params.append(status)
        return _all(self.c.execute(sql + " ORDER BY id", params))


class PendenteRepo(_Tabela):
    tabela = "produto_pendente"

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute(
                "SELECT * FROM produto_pendente WHERE status_geral = ? ORDER BY id", (status,)))
        return _all(self.c.execute("SELECT * FROM produto_pendente ORDER BY id"))

    def aberto_por_aparelho(self, aparelho_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            """SELECT * FROM produto_pendente
               WHERE aparelho_id = ? AND status_geral NOT IN ('Liberado', 'Retirada de Peças')""",
            (aparelho_id,),
        ))

    def add_peca(self, pendente_id: str, descricao: str, valor: Decimal, data: str) -> int:
        return _insert(self.c, "pendente_peca", {
            "pendente_id": pendente_id, "descricao": descricao, "valor": valor, "data": data,
        })

    def pecas(self, pendente_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM pendente_peca WHERE pendente_id = ? ORDER BY id", (pendente_id,)))


# -------------------------
# Notas de entrada
# -------------------------

class NotaRepo(_Tabela):
    tabela = "nota_entrada"

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute(
                "SELECT * FROM nota_entrada WHERE status = ? ORDER BY id", (status,)))
        return _all(self.c.execute("SELECT * FROM nota_entrada ORDER BY id"))

    def insert_produto(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "nota_produto", data)

    def get_produto(self, produto_id: int) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM nota_produto WHERE id = ?", (produto_id,)))

    def update_produto(self, produto_id: int, **changes: Any) -> int:
        return _update(self.c, "nota_produto", "id", produto_id, changes)

    def produtos(self, nota_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM nota_produto WHERE nota_id = ? ORDER BY id", (nota_id,)))

    def insert_conferencia(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "nota_conferencia", data)

    def conferencias(self, nota_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM nota_conferencia WHERE nota_id = ? ORDER BY id", (nota_id,)))

    def imei_na_nota(self, nota_id: str, imei: str) -> bool:
        row = self.c.execute(
            "SELECT 1 FROM nota_conferencia WHERE nota_id = ? AND imei = ?", (nota_id, imei)
        ).fetchone()
        return row is not None

    def insert_pagamento(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "nota_pagamento", data)

    def pagamentos(self, nota_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM nota_pagamento WHERE nota_id = ? ORDER BY id", (nota_id,)))

    def insert_alerta(self, nota_id: str, tipo: str, mensagem: str, data: str) -> int:
        return _insert(self.c, "nota_alerta", {
            "nota_id": nota_id, "tipo": tipo, "mensagem": mensagem, "data": data,
        })

    def alertas(self, nota_id: str, somente_abertos: bool = False) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM nota_alerta WHERE nota_id = ?"
        if somente_abertos:
            sql += " AND resolvido = 0"
        return _all(self.c.execute(sql + " ORDER BY id", (nota_id,)))

    def resolver_alertas(self, nota_id: str, tipo: str, responsavel: str, data: str) -> int:
        cur = self.c.execute(
            """UPDATE nota_alerta SET resolvido = 1, resolvido_por = ?, data_resolucao = ?
               WHERE nota_id = ? AND tipo = ? AND resolvido = 0""",
            (responsavel, data, nota_id, tipo),
        )
        return cur.rowcount


# -------------------------
# Assistência: OS e peças
# -------------------------

class OSRepo(_Tabela):
    tabela = "ordem_servico"

    def ativa_por_imei(self, imei: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            """SELECT * FROM ordem_servico
               WHERE imei = ? AND status IN ('Aberta', 'Em serviço', 'Aguardando Peça')""",
            (imei,),
        ))

    def listar(self, status: Optional[str] = None, loja_id: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM ordem_servico WHERE 1=1"
        params: List[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        if loja_id:
            sql += " AND loja_id = ?"
            params.append(loja_id)
        return _all(self.c.execute(sql + " ORDER BY data_abertura, id", params))

    def por_cliente(self, cliente: str, limite: int = 3) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            """SELECT * FROM ordem_servico WHERE lower(cliente) = lower(?)
               ORDER BY data_abertura DESC, id DESC LIMIT ?""",
            (cliente, limite),
        ))

    def insert_peca(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "os_peca", data)

    def pecas(self, os_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute("SELECT * FROM os_peca WHERE os_id = ? ORDER BY id", (os_id,)))

    def insert_pagamento(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "os_pagamento", data)

    def pagamentos(self, os_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute("SELECT * FROM os_pagamento WHERE os_id = ? ORDER BY id", (os_id,)))


class PecaEstoqueRepo(_Tabela):
    tabela = "peca_estoque"

    def consumir(self, id_: str, quantidade: int = 1) -> bool:
        cur = self.c.execute(
            "UPDATE peca_estoque SET quantidade = quantidade - ? WHERE id = ? AND quantidade >= ?",
            (quantidade, id_, quantidade),
        )
        return cur.rowcount == 1

    def listar(self, loja_id: Optional[str] = None, somente_disponiveis: bool = True) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM peca_estoque WHERE 1=1"
        params: List[Any] = []
        if loja_id:
            sql += " AND loja_id = ?"
            params.append(loja_id)
        if somente_disponiveis:
            sql += " AND quantidade > 0"
        return _all(self.c.execute(sql + " ORDER BY id", params))


# -------------------------
# Garantias
# -------------------------

class GarantiaRepo(_Tabela):
    tabela = "garantia"

    def aberta_por_imei(self, imei: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            "SELECT * FROM garantia WHERE imei = ? AND status IN ('Ativa', 'Em Tratativa')", (imei,)))

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute(
                "SELECT * FROM garantia WHERE status = ? ORDER BY data_fim, id", (status,)))
        return _all(self.c.execute("SELECT * FROM garantia ORDER BY data_fim, id"))

    def ativas_vencidas(self, hoje: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM garantia WHERE status = 'Ativa' AND data_fim < ? ORDER BY id", (hoje,)))

    def insert_tratativa(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "tratativa", data)

    def get_tratativa(self, tratativa_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM tratativa WHERE id = ?", (tratativa_id,)))

    def update_tratativa(self, tratativa_id: str, **changes: Any) -> int:
        return _update(self.c, "tratativa", "id", tratativa_id, changes)

    def tratativas(self, garantia_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM tratativa WHERE 1=1"
        params: List[Any] = []
        if garantia_id:
            sql += " AND garantia_id = ?"
            params.append(garantia_id)
        if status:
            sql += " AND status = ?"
            params.append(status)
        return _all(self.c.execute(sql + " ORDER BY id", params))


# -------------------------
# Retirada de peças
# -------------------------

class RetiradaRepo(_Tabela):
    tabela = "retirada_pecas"

    def ativa_por_aparelho(self, aparelho_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            """SELECT * FROM retirada_pecas
               WHERE aparelho_id = ? AND status IN ('Pendente Assistência', 'Em Desmonte')""",
            (aparelho_id,),
        ))

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute(
                "SELECT * FROM retirada_pecas WHERE status = ? ORDER BY id", (status,)))
        return _all(self.c.execute("SELECT * FROM retirada_pecas ORDER BY id"))

    def insert_item(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "retirada_peca_item", data)

    def update_item(self, item_id: int, **changes: Any) -> int:
        return _update(self.c, "retirada_peca_item", "id", item_id, changes)

    def delete_item(self, retirada_id: str, item_id: int) -> int:
        cur = self.c.execute(
            "DELETE FROM retirada_peca_item WHERE id = ? AND retirada_id = ?", (item_id, retirada_id))
        return cur.rowcount

    def itens(self, retirada_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM retirada_peca_item WHERE retirada_id = ? ORDER BY id", (retirada_id,)))


# -------------------------
# Solicitação de peças e consignação
# -------------------------

class SolicitacaoRepo(_Tabela):
    tabela = "solicitacao_peca"

    def listar(self, status: Optional[str] = None, os_id: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM solicitacao_peca WHERE 1=1"
        params: List[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        if os_id:
            sql += " AND os_id = ?"
            params.append(os_id)
        return _all(self.c.execute(sql + " ORDER BY id", params))

    def do_lote(self, lote_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute("SELECT * FROM solicitacao_peca WHERE lote_id = ? ORDER BY id", (lote_id,)))

    def vincular_lote(self, ids: List[str], lote_id: str) -> int:
        """Só vincula solicitações aprovadas e ainda sem lote."""
        marcadores = ",".join("?" for _ in ids)
        cur = self.c.execute(
            f"""UPDATE solicitacao_peca SET lote_id = ?
                WHERE id IN ({marcadores}) AND status = 'Aprovada' AND lote_id IS NULL""",
            (lote_id, *ids),
        )
        return cur.rowcount


class LotePecasRepo(_Tabela):
    tabela = "lote_pecas"

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute("SELECT * FROM lote_pecas WHERE status = ? ORDER BY id", (status,)))
        return _all(self.c.execute("SELECT * FROM lote_pecas ORDER BY id"))


class NotaAssistenciaRepo(_Tabela):
    tabela = "nota_assistencia"

    def criar(self, nota: Dict[str, Any], itens: List[Dict[str, Any]]) -> None:
        self.insert(nota)
        for item in itens:
            self.insert_item({"nota_id": nota["id"], **item})

    def insert_item(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "nota_assistencia_item", data)

    def itens(self, nota_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM nota_assistencia_item WHERE nota_id = ? ORDER BY id", (nota_id,)))

    def listar(self, status: Optional[str] = None, origem: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM nota_assistencia WHERE 1=1"
        params: List[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        if origem:
            sql += " AND origem = ?"
            params.append(origem)
        return _all(self.c.execute(sql + " ORDER BY data_criacao, id", params))


class ConsignacaoRepo(_Tabela):
    tabela = "lote_consignacao"

    def listar(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return _all(self.c.execute("SELECT * FROM lote_consignacao WHERE status = ? ORDER BY id", (status,)))
        return _all(self.c.execute("SELECT * FROM lote_consignacao ORDER BY id"))

    def insert_item(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "consignacao_item", data)

    def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM consignacao_item WHERE id = ?", (item_id,)))

    def item_por_peca(self, peca_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM consignacao_item WHERE peca_id = ?", (peca_id,)))

    def update_item(self, item_id: str, **changes: Any) -> int:
        return _update(self.c, "consignacao_item", "id", item_id, changes)

    def itens(self, lote_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute("SELECT * FROM consignacao_item WHERE lote_id = ? ORDER BY id", (lote_id,)))

    def insert_consumo(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "consignacao_consumo", data)

    def consumo_aberto(self, item_id: str, os_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            """SELECT * FROM consignacao_consumo
               WHERE item_id = ? AND os_id = ? AND estornado = 0 ORDER BY id DESC LIMIT 1""",
            (item_id, os_id),
        ))

    def consumos(self, lote_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            """SELECT cc.* FROM consignacao_consumo cc
               JOIN consignacao_item ci ON ci.id = cc.item_id
               WHERE ci.lote_id = ? ORDER BY cc.id""",
            (lote_id,),
        ))

    def estornar_consumo(self, consumo_id: int) -> int:
        return _update(self.c, "consignacao_consumo", "id", consumo_id, {"estornado": 1})

    def insert_pagamento(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "consignacao_pagamento", data)

    def pagamento_por_nota(self, nota_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute("SELECT * FROM consignacao_pagamento WHERE nota_id = ?", (nota_id,)))

    def update_pagamento(self, pagamento_id: str, **changes: Any) -> int:
        return _update(self.c, "consignacao_pagamento", "id", pagamento_id, changes)

    def pagamentos(self, lote_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM consignacao_pagamento WHERE lote_id = ? ORDER BY id", (lote_id,)))


# -------------------------
# Vendas
# -------------------------

class VendaRepo(_Tabela):
    tabela = "venda"

    def listar(self, status: Optional[str] = None, loja_id: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM venda WHERE 1=1"
        params: List[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        if loja_id:
            sql += " AND loja_id = ?"
            params.append(loja_id)
        return _all(self.c.execute(sql + " ORDER BY data_registro, id", params))

    def _filhos(self, tabela: str, venda_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(f"SELECT * FROM {tabela} WHERE venda_id = ? ORDER BY id", (venda_id,)))

    def insert_item(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "venda_item", data)

    def itens(self, venda_id: str) -> List[Dict[str, Any]]:
        return self._filhos("venda_item", venda_id)

    def insert_acessorio(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "venda_acessorio", data)

    def acessorios(self, venda_id: str) -> List[Dict[str, Any]]:
        return self._filhos("venda_acessorio", venda_id)

    def insert_trade_in(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "venda_trade_in", data)

    def update_trade_in(self, trade_in_id: int, **changes: Any) -> int:
        return _update(self.c, "venda_trade_in", "id", trade_in_id, changes)

    def trade_ins(self, venda_id: str) -> List[Dict[str, Any]]:
        return self._filhos("venda_trade_in", venda_id)

    def insert_pagamento(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "venda_pagamento", data)

    def pagamentos(self, venda_id: str) -> List[Dict[str, Any]]:
        return self._filhos("venda_pagamento", venda_id)


# -------------------------
# Fiado
# -------------------------

class ParcelaRepo(_Tabela):
    tabela = "parcela_fiado"

    def por_venda(self, venda_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM parcela_fiado WHERE venda_id = ? ORDER BY numero", (venda_id,)))

    def listar(self, status: Optional[str] = None, cliente: Optional[str] = None) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM parcela_fiado WHERE 1=1"
        params: List[Any] = []
        if status:
            sql += " AND status = ?"
            params.append(status)
        if cliente:
            sql += " AND lower(cliente) = lower(?)"
            params.append(cliente)
        return _all(self.c.execute(sql + " ORDER BY data_vencimento, id", params))

    def pendentes_vencidas(self, hoje: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM parcela_fiado WHERE status = 'Pendente' AND data_vencimento < ? ORDER BY id",
            (hoje,),
        ))


# -------------------------
# Acessórios
# -------------------------

class AcessorioRepo(_Tabela):
    tabela = "acessorio"

    def get_by_descricao(self, descricao: str, loja_id: str) -> Optional[Dict[str, Any]]:
        return _one(self.c.execute(
            "SELECT * FROM acessorio WHERE descricao = ? COLLATE NOCASE AND loja_id = ?",
            (descricao.strip(), loja_id),
        ))

    def listar(self, loja_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if loja_id:
            return _all(self.c.execute("SELECT * FROM acessorio WHERE loja_id = ? ORDER BY id", (loja_id,)))
        return _all(self.c.execute("SELECT * FROM acessorio ORDER BY id"))

    def adicionar(self, id_: str, quantidade: int) -> int:
        cur = self.c.execute(
            "UPDATE acessorio SET quantidade = quantidade + ? WHERE id = ?", (quantidade, id_))
        return cur.rowcount

    def subtrair(self, id_: str, quantidade: int) -> bool:
        cur = self.c.execute(
            "UPDATE acessorio SET quantidade = quantidade - ? WHERE id = ? AND quantidade >= ?",
            (quantidade, id_, quantidade),
        )
        return cur.rowcount == 1

    def registrar_movimento(self, acessorio_id: str, tipo: str, quantidade: int, ref: Optional[str], data: str) -> int:
        return _insert(self.c, "acessorio_movimento", {
            "acessorio_id": acessorio_id, "tipo": tipo, "quantidade": quantidade, "ref": ref, "data": data,
        })

    def movimentos(self, acessorio_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM acessorio_movimento WHERE acessorio_id = ? ORDER BY data, id", (acessorio_id,)))

    def saidas_diarias(self, acessorio_id: str, desde: str) -> Dict[str, int]:
        """Quantidade que saiu por dia (saídas e vendas, descontadas devoluções)."""
        cur = self.c.execute(
            """
            SELECT substr(data, 1, 10) AS dia,
                   SUM(CASE WHEN tipo IN ('saida', 'venda') THEN quantidade
                            WHEN tipo = 'devolucao' THEN -quantidade ELSE 0 END) AS qtd
            FROM acessorio_movimento
            WHERE acessorio_id = ? AND data >= ? AND tipo IN ('saida', 'venda', 'devolucao')
            GROUP BY dia
            """,
            (acessorio_id, desde),
        )
        return {r["dia"]: int(r["qtd"] or 0) for r in cur.fetchall()}

    def insert_historico_valor(self, data: Dict[str, Any]) -> int:
        return _insert(self.c, "acessorio_valor_historico", data)

    def historico_valor(self, acessorio_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM acessorio_valor_historico WHERE acessorio_id = ? ORDER BY id", (acessorio_id,)))


# -------------------------
# Financeiro
# -------------------------

class ContaRepo(_Tabela):
    tabela = "conta_financeira"

    def listar(self, loja_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if loja_id:
            return _all(self.c.execute(
                "SELECT * FROM conta_financeira WHERE loja_id = ? ORDER BY id", (loja_id,)))
        return _all(self.c.execute("SELECT * FROM conta_financeira ORDER BY id"))


class RazaoRepo(_Tabela):
    tabela = "lancamento"

    def por_transacao(self, transacao_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM lancamento WHERE transacao_id = ? ORDER BY id", (transacao_id,)))

    def por_referencia(self, ref_tipo: str, ref_id: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            "SELECT * FROM lancamento WHERE ref_tipo = ? AND ref_id = ? ORDER BY id", (ref_tipo, ref_id)))

    def extrato(self, conta: str) -> List[Dict[str, Any]]:
        return _all(self.c.execute(
            """SELECT * FROM lancamento WHERE conta_debito = ? OR conta_credito = ?
               ORDER BY data, id""",
            (conta, conta),
        ))

    def saldo(self, conta: str) -> Decimal:
        saldo = Decimal("0.00")
        for r in self.extrato(conta):
            v = dinheiro(r["valor"])
            if r["conta_debito"] == conta:
                saldo += v
            if r["conta_credito"] == conta:
                saldo -= v
        return dinheiro(saldo)

    def balancete(self) -> Dict[str, Dict[str, Decimal]]:
        totais: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: {"debito": Decimal("0.00"), "credito": Decimal("0.00")}
        )
        for r in self.c.execute("SELECT conta_debito, conta_credito, valor FROM lancamento"):
            v = dinheiro(r["valor"])
            totais[r["conta_debito"]]["debito"] += v
            totais[r["conta_credito"]]["credito"] += v
        return dict(totais)

    def conferir(self, id_: int, responsavel: str, data: str) -> int:
        cur = self.c.execute(
            """UPDATE lancamento SET conferido = 1, conferido_por = ?, data_conferencia = ?
               WHERE id = ? AND conferido = 0""",
            (responsavel, data, id_),
        )
        return cur.rowcount

    def pendentes_conferencia(self, conta: Optional[str] = None) -> List[Dict[str, Any]]:
        if conta:
            return _all(self.c.execute(
                """SELECT * FROM lancamento WHERE conferido = 0 AND (conta_debito = ? OR conta_credito = ?)
                   ORDER BY id""",
                (conta, conta),
            ))
        return _all(self.c.execute("SELECT * FROM lancamento WHERE conferido = 0 ORDER BY id"))


class DespesaRepo(_Tabela):
    tabela = "despesa"

    def listar(self, competencia: Optional[str] = None) -> List[Dict[str, Any]]:
        if competencia:
            return _all(self.c.execute(
                "SELECT * FROM despesa WHERE competencia = ? ORDER BY id", (competencia,)))
        return _all(self.c.execute("SELECT * FROM despesa ORDER BY id"))
