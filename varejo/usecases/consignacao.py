# varejo/usecases/consignacao.py
"""
UC: Consignação de peças (mercadoria do fornecedor no estoque da assistência).

- O lote entra sem lançamento no razão: as peças vão para `peca_estoque`
  com origem 'Consignação', mas continuam sendo do fornecedor.
- Cada consumo numa OS passa a peça para a loja: D ESTOQUE / C FORNECEDORES
  pelo custo. O cancelamento da OS estorna o consumo enquanto ele não foi
  faturado ao fornecedor.
- O acerto fatura o consumido em pagamentos parciais (PAG-xxx); cada um
  gera uma nota de assistência NOTA-CONS-xxx, paga pelo financeiro em
  `notas_assistencia.finalizar_nota_assistencia`.
- No fechamento o saldo não consumido volta ao fornecedor.

Por item: original = disponível + consumida + devolvida, e
paga <= faturada <= consumida. Os status do item e do lote são derivados
dessas quantidades e dos pagamentos pendentes.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from varejo.config import DB_PATH
from varejo.domain.calculos import carimbo, dinheiro, soma, valor_recomendado_peca
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_CONSIGNACAO
from varejo.domain.models import (
    ORIGEM_CONSIGNACAO,
    ContaRazao,
    ItemConsignado,
    StatusConsignacao,
    StatusItemConsignacao,
    StatusNotaAssistencia,
)
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import (
    ConsignacaoRepo,
    NotaAssistenciaRepo,
    ParamsRepo,
    PecaEstoqueRepo,
    RazaoRepo,
    TimelineRepo,
    gerar_id,
)
from .financeiro import lancar
from .transicoes import transicionar


PAGAMENTO_PENDENTE = "Pendente"
PAGAMENTO_PAGO = "Pago"


# -------------------------
# Status derivados
# -------------------------

def quantidade_disponivel(item: Dict[str, Any]) -> int:
    return (int(item["quantidade_original"]) - int(item["quantidade_consumida"])
            - int(item["quantidade_devolvida"]))


def quantidade_a_faturar(item: Dict[str, Any]) -> int:
    return int(item["quantidade_consumida"]) - int(item["quantidade_faturada"])


def status_item(item: Dict[str, Any]) -> str:
    if quantidade_disponivel(item) > 0:
        return StatusItemConsignacao.DISPONIVEL
    if int(item["quantidade_consumida"]) == 0:
        return StatusItemConsignacao.DEVOLVIDO
    if quantidade_a_faturar(item) > 0:
        return StatusItemConsignacao.CONSUMIDO
    if int(item["quantidade_paga"]) < int(item["quantidade_faturada"]):
        return StatusItemConsignacao.EM_PAGAMENTO
    return StatusItemConsignacao.PAGO


def status_lote(lote: Dict[str, Any], itens: List[Dict[str, Any]], pagamentos: List[Dict[str, Any]]) -> str:
    """Aguardando Pagamento enquanto houver PAG pendente; Concluido/Devolvido
    quando fechado (ou com todos os itens pagos/devolvidos)."""
    if any(p["status"] == PAGAMENTO_PENDENTE for p in pagamentos):
        return StatusConsignacao.AGUARDANDO_PAGAMENTO
    finalizados = all(status_item(i) in (StatusItemConsignacao.PAGO, StatusItemConsignacao.DEVOLVIDO)
                      for i in itens)
    if lote["fechado"] or finalizados:
        if any(int(i["quantidade_consumida"]) > 0 for i in itens):
            return StatusConsignacao.CONCLUIDO
        return StatusConsignacao.DEVOLVIDO
    return StatusConsignacao.EM_ACERTO if lote["em_acerto"] else StatusConsignacao.ABERTO


def valor_consumido(itens: List[Dict[str, Any]]):
    return soma(dinheiro(i["valor_custo"]) * int(i["quantidade_consumida"]) for i in itens)


# -------------------------
# Helpers (conexão aberta)
# -------------------------

def _exigir_lote(conn: sqlite3.Connection, lote_id: str) -> Dict[str, Any]:
    lote = ConsignacaoRepo(conn).get(lote_id)
    if not lote:
        raise RegistroNaoEncontrado("Lote de consignação", lote_id)
    return lote


def _exigir_aberto(lote: Dict[str, Any]) -> None:
    if lote["fechado"] or lote["status"] in StatusConsignacao.FINAIS:
        raise RegraViolada(f"Lote {lote['id']} está '{lote['status']}' e não aceita movimentações")


def _exigir_item(conn: sqlite3.Connection, lote_id: str, item_id: str) -> Dict[str, Any]:
    item = ConsignacaoRepo(conn).get_item(item_id)
    if not item or item["lote_id"] != lote_id:
        raise RegistroNaoEncontrado("Item de consignação", f"{lote_id}/{item_id}")
    return item


def _item_dict(item: Union[ItemConsignado, Dict[str, Any]]) -> Dict[str, Any]:
    dados = asdict(item) if is_dataclass(item) else dict(item)
    descricao = (dados.get("descricao") or "").strip()
    if not descricao:
        raise RegraViolada("Descrição da peça consignada é obrigatória")
    if not (dados.get("loja_id") or "").strip():
        raise RegraViolada(f"Loja de destino obrigatória para {descricao}")
    quantidade = dados.get("quantidade")
    quantidade = 0 if quantidade is None else int(quantidade)
    if quantidade < 1:
        raise RegraViolada(f"Quantidade de {descricao} deve ser >= 1")
    custo = dinheiro(dados.get("valor_custo"))
    if custo <= 0:
        raise RegraViolada(f"Custo de {descricao} deve ser positivo")
    return {
        "descricao": descricao,
        "modelo": dados.get("modelo"),
        "loja_id": dados["loja_id"].strip(),
        "quantidade": quantidade,
        "valor_custo": custo,
    }


def _sincronizar(
    conn: sqlite3.Connection,
    lote_id: str,
    agora: str,
    responsavel: Optional[str] = None,
    descricao: Optional[str] = None,
) -> Dict[str, Any]:
    """Recalcula o status dos itens e do lote; o lote só muda pelo fluxo."""
    repo = ConsignacaoRepo(conn)
    lote = repo.get(lote_id)
    itens = repo.itens(lote_id)
    for item in itens:
        novo = status_item(item)
        if novo != item["status"]:
            repo.update_item(item["id"], status=novo)
            item["status"] = novo
    alvo = status_lote(lote, itens, repo.pagamentos(lote_id))
    if alvo != lote["status"]:
        campos: Dict[str, Any] = {}
        if alvo in StatusConsignacao.FINAIS and not lote["fechado"]:
            campos = {"fechado": 1, "data_fechamento": agora}
        lote = transicionar(conn, "consignacao", lote, FLUXO_CONSIGNACAO, alvo, agora, responsavel, descricao,
                            **campos)
    return lote


def _recolher_peca(conn: sqlite3.Connection, item: Dict[str, Any], quantidade: int) -> None:
    if not PecaEstoqueRepo(conn).consumir(item["peca_id"], quantidade):
        raise RegraViolada(f"Peça {item['peca_id']} ({item['descricao']}) com saldo divergente no estoque")


def _os_do_item(conn: sqlite3.Connection, item: Dict[str, Any]) -> Optional[str]:
    ordens = []
    for consumo in ConsignacaoRepo(conn).consumos(item["lote_id"]):
        if consumo["item_id"] == item["id"] and not consumo["estornado"] and consumo["os_id"] not in ordens:
            ordens.append(consumo["os_id"])
    return ", ".join(ordens) or None


def _gerar_pagamento(
    conn: sqlite3.Connection,
    lote: Dict[str, Any],
    itens: List[Dict[str, Any]],
    responsavel: str,
    forma_pagamento: Optional[str],
    agora: str,
) -> Dict[str, Any]:
    """Fatura o consumo pendente dos itens: nota NOTA-CONS + pagamento PAG pendente."""
    repo = ConsignacaoRepo(conn)
    notas = NotaAssistenciaRepo(conn)
    linhas = [(item, quantidade_a_faturar(item)) for item in itens]
    valor = soma(dinheiro(item["valor_custo"]) * qtd for item, qtd in linhas)

    nota = {
        "id": gerar_id(conn, "NOTA-CONS", 3),
        "origem": ORIGEM_CONSIGNACAO,
        "ref_id": lote["id"],
        "fornecedor": lote["fornecedor"],
        "loja_id": itens[0]["loja_id"],
        "valor_total": valor,
        "status": StatusNotaAssistencia.PENDENTE,
        "forma_pagamento": forma_pagamento,
        "data_criacao": agora,
    }
    notas.criar(nota, [
        {
            "peca": item["descricao"],
            "quantidade": qtd,
            "valor_unitario": dinheiro(item["valor_custo"]),
            "os_id": _os_do_item(conn, item),
            "item_ref": item["id"],
        }
        for item, qtd in linhas
    ])
    for item, _ in linhas:
        repo.update_item(item["id"], quantidade_faturada=int(item["quantidade_consumida"]))

    pagamento = {
        "id": gerar_id(conn, "PAG", 3),
        "lote_id": lote["id"],
        "nota_id": nota["id"],
        "valor": valor,
        "status": PAGAMENTO_PENDENTE,
        "forma_pagamento": forma_pagamento,
        "responsavel": responsavel,
        "data": agora,
    }
    repo.insert_pagamento(pagamento)
    timeline = TimelineRepo(conn)
    timeline.registrar("nota_assistencia", nota["id"], "criacao", f"Pagamento {pagamento['id']} do lote {lote['id']}",
                       agora, responsavel, status_novo=StatusNotaAssistencia.PENDENTE, impacto_financeiro=valor)
    timeline.registrar("consignacao", lote["id"], "pagamento",
                       f"Pagamento parcial {pagamento['id']}: {nota['id']} - {len(linhas)} item(ns) - {valor}"
                       f" | Forma: {forma_pagamento or 'Não informado'}",
                       agora, responsavel, impacto_financeiro=valor)
    return {**pagamento, "nota": nota}


# -------------------------
# Integração com a OS e com o financeiro
# -------------------------

def registrar_consumo(
    conn: sqlite3.Connection,
    peca: Dict[str, Any],
    os_id: str,
    tecnico: Optional[str],
    quantidade: int,
    agora: str,
) -> str:
    """Baixa consignada feita por `adicionar_peca_os` (a peça já saiu do estoque)."""
    repo = ConsignacaoRepo(conn)
    item = repo.item_por_peca(peca["id"])
    if not item:
        raise RegistroNaoEncontrado("Item de consignação da peça", peca["id"])
    lote = _exigir_lote(conn, item["lote_id"])
    _exigir_aberto(lote)

    repo.update_item(item["id"], quantidade_consumida=int(item["quantidade_consumida"]) + quantidade)
    repo.insert_consumo({
        "item_id": item["id"],
        "os_id": os_id,
        "quantidade": quantidade,
        "tecnico": tecnico,
        "data": agora,
    })
    valor = dinheiro(dinheiro(item["valor_custo"]) * quantidade)
    trx = lancar(conn, f"Consumo consignado {item['descricao']} na {os_id}",
                 [(ContaRazao.ESTOQUE, ContaRazao.FORNECEDORES, valor)], agora, "consignacao", lote["id"])
    TimelineRepo(conn).registrar("consignacao", lote["id"], "consumo",
                                 f"{quantidade}x {item['descricao']} consumido na OS {os_id}", agora, tecnico,
                                 impacto_financeiro=valor)
    _sincronizar(conn, lote["id"], agora, tecnico)
    return trx


def estornar_consumo(
    conn: sqlite3.Connection,
    peca_id: str,
    os_id: str,
    agora: str,
    responsavel: Optional[str] = None,
) -> Optional[str]:
    """Desfaz o consumo de uma OS cancelada; consumo já faturado não volta."""
    repo = ConsignacaoRepo(conn)
    item = repo.item_por_peca(peca_id)
    consumo = repo.consumo_aberto(item["id"], os_id) if item else None
    if not consumo:
        return None
    lote = _exigir_lote(conn, item["lote_id"])
    restante = int(item["quantidade_consumida"]) - int(consumo["quantidade"])
    if lote["fechado"] or int(item["quantidade_faturada"]) > restante:
        raise RegraViolada(
            f"Peça consignada {item['descricao']} já faturada ao fornecedor no lote {lote['id']}"
        )
    repo.update_item(item["id"], quantidade_consumida=restante)
    repo.estornar_consumo(consumo["id"])
    valor = dinheiro(dinheiro(item["valor_custo"]) * int(consumo["quantidade"]))
    trx = lancar(conn, f"Estorno de consumo consignado {item['descricao']} ({os_id})",
                 [(ContaRazao.FORNECEDORES, ContaRazao.ESTOQUE, valor)], agora, "consignacao", lote["id"])
    TimelineRepo(conn).registrar("consignacao", lote["id"], "estorno",
                                 f"{consumo['quantidade']}x {item['descricao']} devolvido pela OS {os_id}", agora,
                                 responsavel, impacto_financeiro=-valor)
    _sincronizar(conn, lote["id"], agora, responsavel)
    return trx


def confirmar_pagamento(
    conn: sqlite3.Connection,
    nota: Dict[str, Any],
    responsavel: Optional[str],
    agora: str,
) -> Dict[str, Any]:
    """Marca o PAG da nota como pago e os itens faturados como pagos."""
    repo = ConsignacaoRepo(conn)
    pagamento = repo.pagamento_por_nota(nota["id"])
    if not pagamento:
        raise RegistroNaoEncontrado("Pagamento de consignação", nota["id"])
    if pagamento["status"] != PAGAMENTO_PENDENTE:
        raise RegraViolada(f"Pagamento {pagamento['id']} já está '{pagamento['status']}'")
    repo.update_pagamento(pagamento["id"], status=PAGAMENTO_PAGO, data_pagamento=agora)
    for linha in NotaAssistenciaRepo(conn).itens(nota["id"]):
        item = repo.get_item(linha["item_ref"])
        repo.update_item(item["id"], quantidade_paga=int(item["quantidade_paga"]) + int(linha["quantidade"]))
    TimelineRepo(conn).registrar("consignacao", pagamento["lote_id"], "pagamento_confirmado",
                                 f"Pagamento {pagamento['id']} confirmado ({nota['id']})", agora, responsavel,
                                 impacto_financeiro=dinheiro(pagamento["valor"]))
    return _sincronizar(conn, pagamento["lote_id"], agora, responsavel)


# -------------------------
# Casos de uso
# -------------------------

def criar_lote_consignacao(
    fornecedor: str,
    itens: List[Union[ItemConsignado, Dict[str, Any]]],
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Cria o lote (CONS-xxx) e injeta as peças no estoque da assistência."""
    fornecedor = (fornecedor or "").strip()
    if not fornecedor:
        raise RegraViolada("Fornecedor é obrigatório")
    normalizados = [_item_dict(i) for i in itens or []]
    if not normalizados:
        raise RegraViolada("Lote de consignação sem itens")
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("consignacao_criar", {"fornecedor": fornecedor, "itens": len(normalizados)}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = ConsignacaoRepo(c)
            estoque = PecaEstoqueRepo(c)
            lote = {
                "id": gerar_id(c, "CONS", 3),
                "fornecedor": fornecedor,
                "responsavel": responsavel,
                "status": StatusConsignacao.ABERTO,
                "em_acerto": 0,
                "fechado": 0,
                "data_criacao": quando,
            }
            repo.insert(lote)
            for it in normalizados:
                peca_id = gerar_id(c, "PEC", 4)
                estoque.insert({
                    "id": peca_id,
                    "descricao": it["descricao"],
                    "modelo_origem": it["modelo"],
                    "loja_id": it["loja_id"],
                    "quantidade": it["quantidade"],
                    "valor_custo": it["valor_custo"],
                    "valor_recomendado": valor_recomendado_peca(it["valor_custo"], regras),
                    "origem": ORIGEM_CONSIGNACAO,
                    "origem_ref": lote["id"],
                    "data_entrada": quando,
                })
                repo.insert_item({
                    "id": gerar_id(c, "CONS-ITEM", 3),
                    "lote_id": lote["id"],
                    "peca_id": peca_id,
                    "descricao": it["descricao"],
                    "modelo": it["modelo"],
                    "loja_id": it["loja_id"],
                    "valor_custo": it["valor_custo"],
                    "quantidade_original": it["quantidade"],
                    "status": StatusItemConsignacao.DISPONIVEL,
                })
            TimelineRepo(c).registrar("consignacao", lote["id"], "entrada",
                                      f"Lote criado com {len(normalizados)} tipo(s) de peça", quando, responsavel,
                                      status_novo=StatusConsignacao.ABERTO)
        ctx["resultado"] = lote["id"]
    log_evento("assistencia", "consignacao_criada", lote["id"], fornecedor=fornecedor, itens=len(normalizados))
    return lote


def transferir_item(
    lote_id: str,
    item_id: str,
    loja_destino: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Move o saldo de um item (e a peça do estoque) para outra loja."""
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        lote = _exigir_lote(c, lote_id)
        if lote["status"] != StatusConsignacao.ABERTO:
            raise RegraViolada(f"Transferência exige lote 'Aberto' (lote {lote_id} está '{lote['status']}')")
        item = _exigir_item(c, lote_id, item_id)
        if status_item(item) != StatusItemConsignacao.DISPONIVEL:
            raise RegraViolada(f"Item {item_id} está '{item['status']}'")
        if loja_destino == item["loja_id"]:
            raise RegraViolada(f"Item {item_id} já está na loja {loja_destino}")
        ConsignacaoRepo(c).update_item(item_id, loja_id=loja_destino)
        PecaEstoqueRepo(c).update(item["peca_id"], loja_id=loja_destino)
        TimelineRepo(c).registrar("consignacao", lote_id, "transferencia",
                                  f"{item['descricao']}: {item['loja_id']} -> {loja_destino}", quando, responsavel)
        return {**item, "loja_id": loja_destino}


def iniciar_acerto(
    lote_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        lote = _exigir_lote(c, lote_id)
        _exigir_aberto(lote)
        if lote["em_acerto"]:
            raise RegraViolada(f"Lote {lote_id} já está em acerto de contas")
        ConsignacaoRepo(c).update(lote_id, em_acerto=1, data_acerto=quando)
        TimelineRepo(c).registrar("consignacao", lote_id, "acerto", "Acerto de contas iniciado", quando, responsavel)
        return _sincronizar(c, lote_id, quando, responsavel, "Acerto de contas iniciado")


def gerar_pagamento_parcial(
    lote_id: str,
    item_ids: List[str],
    responsavel: str,
    forma_pagamento: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fatura o consumo pendente dos itens escolhidos (nota + PAG pendente)."""
    quando = carimbo(agora)
    with operacao("consignacao_pagamento", {"lote": lote_id, "itens": list(item_ids)}) as ctx:
        with connect(db_path, imediato=True) as c:
            lote = _exigir_lote(c, lote_id)
            _exigir_aberto(lote)
            selecionados = []
            for item_id in dict.fromkeys(item_ids):
                item = _exigir_item(c, lote_id, item_id)
                if quantidade_a_faturar(item) <= 0:
                    raise RegraViolada(f"Item {item_id} não tem consumo a faturar")
                selecionados.append(item)
            if not selecionados:
                raise RegraViolada("Selecione ao menos um item consumido")
            pagamento = _gerar_pagamento(c, lote, selecionados, responsavel, forma_pagamento, quando)
            _sincronizar(c, lote_id, quando, responsavel)
        ctx["resultado"] = pagamento["id"]
    log_evento("assistencia", "consignacao_pagamento", lote_id, pagamento=pagamento["id"],
               valor=str(pagamento["valor"]))
    return pagamento


def devolver_item(
    lote_id: str,
    item_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Devolve ao fornecedor todo o saldo disponível do item."""
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        lote = _exigir_lote(c, lote_id)
        _exigir_aberto(lote)
        item = _exigir_item(c, lote_id, item_id)
        disponivel = quantidade_disponivel(item)
        if disponivel <= 0:
            raise RegraViolada(f"Item {item_id} não tem saldo para devolver ('{item['status']}')")
        _recolher_peca(c, item, disponivel)
        ConsignacaoRepo(c).update_item(item_id, quantidade_devolvida=int(item["quantidade_devolvida"]) + disponivel,
                                       devolvido_por=responsavel, data_devolucao=quando)
        TimelineRepo(c).registrar("consignacao", lote_id, "devolucao",
                                  f"{item['descricao']} ({disponivel} un.) devolvido ao fornecedor", quando,
                                  responsavel)
        _sincronizar(c, lote_id, quando, responsavel)
        return ConsignacaoRepo(c).get_item(item_id)


def fechar_lote(
    lote_id: str,
    responsavel: str,
    forma_pagamento: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fatura o consumo restante, devolve as sobras e fecha o lote."""
    quando = carimbo(agora)
    with operacao("consignacao_fechar", {"lote": lote_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = ConsignacaoRepo(c)
            lote = _exigir_lote(c, lote_id)
            _exigir_aberto(lote)
            itens = repo.itens(lote_id)

            pendentes = [i for i in itens if quantidade_a_faturar(i) > 0]
            pagamento = _gerar_pagamento(c, lote, pendentes, responsavel, forma_pagamento, quando) \
                if pendentes else None

            for item in itens:
                disponivel = quantidade_disponivel(item)
                if disponivel <= 0:
                    continue
                _recolher_peca(c, item, disponivel)
                repo.update_item(item["id"], quantidade_devolvida=int(item["quantidade_devolvida"]) + disponivel,
                                 devolvido_por=responsavel, data_devolucao=quando)
                TimelineRepo(c).registrar("consignacao", lote_id, "devolucao",
                                          f"{item['descricao']} ({disponivel} un.) devolvido no fechamento", quando,
                                          responsavel)

            repo.update(lote_id, fechado=1, data_fechamento=quando)
            lote = _sincronizar(c, lote_id, quando, responsavel, "Lote fechado")
        ctx["resultado"] = lote["status"]
    log_evento("assistencia", "consignacao_fechada", lote_id, status=lote["status"])
    return {**lote, "pagamento": pagamento}


# -------------------------
# Consultas
# -------------------------

def listar_lotes_consignacao(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return ConsignacaoRepo(c).listar(status)


def obter_lote_consignacao(lote_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        repo = ConsignacaoRepo(c)
        lote = _exigir_lote(c, lote_id)
        itens = repo.itens(lote_id)
        for item in itens:
            item["quantidade_disponivel"] = quantidade_disponivel(item)
        lote["itens"] = itens
        lote["valor_consumido"] = valor_consumido(itens)
        lote["pagamentos"] = repo.pagamentos(lote_id)
        lote["consumos"] = repo.consumos(lote_id)
        lote["lancamentos"] = RazaoRepo(c).por_referencia("consignacao", lote_id)
        lote["timeline"] = TimelineRepo(c).listar("consignacao", lote_id)
        return lote
