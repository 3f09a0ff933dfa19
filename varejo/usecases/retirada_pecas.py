# varejo/usecases/retirada_pecas.py
"""
UC: Retirada de peças (desmonte de aparelho para o estoque da assistência).

Pendente Assistência -> Em Desmonte -> Concluída (ou Cancelada).
O aparelho fica 'Em Desmonte' durante o processo; ao concluir vira
'Desmontado' e cada peça retirada entra em `peca_estoque` com valor
recomendado = custo x markup.
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from varejo.config import DB_PATH
from varejo.domain.calculos import carimbo, dinheiro, validar_custo_retirada, valor_recomendado_peca
from varejo.domain.erros import ImeiIndisponivel, RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_PENDENTE, FLUXO_RETIRADA
from varejo.domain.models import PecaRetirada, StatusAparelho, StatusPendente, StatusRetirada
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import (
    AparelhoRepo,
    ParamsRepo,
    PecaEstoqueRepo,
    PendenteRepo,
    RetiradaRepo,
    TimelineRepo,
    gerar_id,
)
from .estoque_aparelhos import alterar_status_aparelho, exigir_aparelho
from .transicoes import transicionar


ORIGEM_RETIRADA = "Retirada de Peça"
_PODE_DESMONTAR = (StatusAparelho.DISPONIVEL, StatusAparelho.EM_TRIAGEM)


def _exigir_retirada(conn: sqlite3.Connection, retirada_id: str) -> Dict[str, Any]:
    retirada = RetiradaRepo(conn).get(retirada_id)
    if not retirada:
        raise RegistroNaoEncontrado("Retirada", retirada_id)
    return retirada


def _exigir_editavel(retirada: Dict[str, Any]) -> None:
    if retirada["status"] not in StatusRetirada.ATIVOS:
        raise RegraViolada(f"Retirada {retirada['id']} está '{retirada['status']}' e não aceita alterações")


def _peca_dict(peca: Union[PecaRetirada, Dict[str, Any]]) -> Dict[str, Any]:
    dados = asdict(peca) if is_dataclass(peca) else dict(peca)
    nome = (dados.get("nome") or "").strip()
    if not nome:
        raise RegraViolada("Nome da peça é obrigatório")
    valor = dinheiro(dados.get("valor"))
    if valor <= 0:
        raise RegraViolada(f"Valor da peça {nome} deve ser positivo")
    quantidade = dados.get("quantidade")
    quantidade = 1 if quantidade is None else int(quantidade)
    if quantidade < 1:
        raise RegraViolada(f"Quantidade da peça {nome} deve ser >= 1")
    return {"nome": nome, "valor": valor, "quantidade": quantidade}


def solicitar_retirada(
    imei: str,
    motivo: str,
    responsavel: str,
    pecas: Optional[List[Union[PecaRetirada, Dict[str, Any]]]] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Abre a retirada e tira o aparelho de circulação ('Em Desmonte')."""
    itens = [_peca_dict(p) for p in pecas or []]
    quando = carimbo(agora)
    with operacao("retirada_solicitar", {"imei": imei, "motivo": motivo}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = RetiradaRepo(c)
            aparelho = exigir_aparelho(c, imei)
            if aparelho["status"] not in _PODE_DESMONTAR:
                raise ImeiIndisponivel(aparelho["imei"], f"está '{aparelho['status']}'")
            ativa = repo.ativa_por_aparelho(aparelho["id"])
            if ativa:
                raise RegraViolada(f"Aparelho já possui retirada ativa ({ativa['id']})")

            retirada = {
                "id": gerar_id(c, "RET", 4, ano=int(quando[:4])),
                "aparelho_id": aparelho["id"],
                "imei": aparelho["imei"],
                "modelo": aparelho["modelo"],
                "custo_aparelho": dinheiro(aparelho["valor_custo"]),
                "status": StatusRetirada.PENDENTE,
                "status_aparelho_anterior": aparelho["status"],
                "loja_id": aparelho["loja_id"],
                "motivo": motivo,
                "responsavel": responsavel,
                "data_solicitacao": quando,
            }
            alterar_status_aparelho(c, aparelho, _PODE_DESMONTAR, StatusAparelho.EM_DESMONTE, retirada["id"],
                                    quando, f"Retirada de peças {retirada['id']}")
            repo.insert(retirada)
            for item in itens:
                repo.insert_item({"retirada_id": retirada["id"], **item})
            TimelineRepo(c).registrar("retirada", retirada["id"], "solicitacao", motivo, quando, responsavel,
                                      status_novo=StatusRetirada.PENDENTE)
        ctx["resultado"] = retirada["id"]
    return retirada


def iniciar_desmonte(
    retirada_id: str,
    tecnico: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        retirada = _exigir_retirada(c, retirada_id)
        return transicionar(c, "retirada", retirada, FLUXO_RETIRADA, StatusRetirada.EM_DESMONTE, quando, tecnico,
                            f"Desmonte iniciado por {tecnico}", tecnico=tecnico, data_inicio=quando)


def adicionar_peca_retirada(
    retirada_id: str,
    peca: Union[PecaRetirada, Dict[str, Any]],
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> int:
    item = _peca_dict(peca)
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        retirada = _exigir_retirada(c, retirada_id)
        _exigir_editavel(retirada)
        item_id = RetiradaRepo(c).insert_item({"retirada_id": retirada_id, **item})
        TimelineRepo(c).registrar("retirada", retirada_id, "peca_adicionada",
                                  f"{item['quantidade']}x {item['nome']} ({item['valor']})", quando, responsavel)
        return item_id


def remover_peca_retirada(
    retirada_id: str,
    item_id: int,
    responsavel: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> None:
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        retirada = _exigir_retirada(c, retirada_id)
        _exigir_editavel(retirada)
        if RetiradaRepo(c).delete_item(retirada_id, item_id) != 1:
            raise RegistroNaoEncontrado("Peça da retirada", f"{retirada_id}/{item_id}")
        TimelineRepo(c).registrar("retirada", retirada_id, "peca_removida", f"Item {item_id} removido", quando,
                                  responsavel)


def validar_custo(retirada_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Informativo: as peças cobrem o custo do aparelho?"""
    with connect(db_path) as c:
        retirada = _exigir_retirada(c, retirada_id)
        return validar_custo_retirada(retirada["custo_aparelho"], RetiradaRepo(c).itens(retirada_id))


def finalizar_retirada(
    retirada_id: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Gera as peças em estoque e marca o aparelho como 'Desmontado'."""
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("retirada_finalizar", {"retirada": retirada_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = RetiradaRepo(c)
            retirada = _exigir_retirada(c, retirada_id)
            itens = repo.itens(retirada_id)
            if retirada["status"] != StatusRetirada.EM_DESMONTE:
                raise RegraViolada("Só é possível finalizar uma retirada em desmonte")
            if not itens:
                raise RegraViolada("Retirada sem peças cadastradas")

            estoque = PecaEstoqueRepo(c)
            geradas = []
            for item in itens:
                peca_id = gerar_id(c, "PEC", 4)
                estoque.insert({
                    "id": peca_id,
                    "descricao": item["nome"],
                    "modelo_origem": retirada["modelo"],
                    "loja_id": retirada["loja_id"],
                    "quantidade": int(item["quantidade"]),
                    "valor_custo": dinheiro(item["valor"]),
                    "valor_recomendado": valor_recomendado_peca(item["valor"], regras),
                    "origem": ORIGEM_RETIRADA,
                    "origem_ref": retirada_id,
                    "data_entrada": quando,
                })
                repo.update_item(item["id"], peca_estoque_id=peca_id)
                geradas.append(peca_id)

            aparelho = AparelhoRepo(c).get(retirada["aparelho_id"])
            alterar_status_aparelho(c, aparelho, (StatusAparelho.EM_DESMONTE,), StatusAparelho.DESMONTADO,
                                    retirada_id, quando, f"Desmontado na retirada {retirada_id}")
            pendente = PendenteRepo(c).aberto_por_aparelho(aparelho["id"])
            if pendente:
                transicionar(c, "pendente", pendente, FLUXO_PENDENTE, StatusPendente.RETIRADA_PECAS, quando,
                             responsavel, f"Destinado à retirada {retirada_id}")

            custo = validar_custo_retirada(retirada["custo_aparelho"], itens)
            retirada = transicionar(c, "retirada", retirada, FLUXO_RETIRADA, StatusRetirada.CONCLUIDA, quando,
                                    responsavel, f"{len(geradas)} peça(s) geradas; soma {custo['soma_pecas']}",
                                    data_conclusao=quando)
        ctx["resultado"] = geradas
    log_evento("assistencia", "retirada_finalizada", retirada_id, pecas=len(geradas))
    return {**retirada, "pecas_geradas": geradas}


def cancelar_retirada(
    retirada_id: str,
    responsavel: str,
    motivo: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Cancela e devolve o aparelho ao status que tinha antes da solicitação."""
    quando = carimbo(agora)
    with operacao("retirada_cancelar", {"retirada": retirada_id}):
        with connect(db_path, imediato=True) as c:
            retirada = _exigir_retirada(c, retirada_id)
            retirada = transicionar(c, "retirada", retirada, FLUXO_RETIRADA, StatusRetirada.CANCELADA, quando,
                                    responsavel, motivo or "Retirada cancelada", data_conclusao=quando)
            aparelho = AparelhoRepo(c).get(retirada["aparelho_id"])
            anterior = retirada["status_aparelho_anterior"] or StatusAparelho.DISPONIVEL
            alterar_status_aparelho(c, aparelho, (StatusAparelho.EM_DESMONTE,), anterior, None, quando,
                                    f"Retirada {retirada_id} cancelada")
            return retirada


def obter_retirada(retirada_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        retirada = _exigir_retirada(c, retirada_id)
        retirada["itens"] = RetiradaRepo(c).itens(retirada_id)
        retirada["validacao"] = validar_custo_retirada(retirada["custo_aparelho"], retirada["itens"])
        retirada["timeline"] = TimelineRepo(c).listar("retirada", retirada_id)
        return retirada


def listar_retiradas(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return RetiradaRepo(c).listar(status)


def listar_pecas_estoque(loja_id: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return PecaEstoqueRepo(c).listar(loja_id)
