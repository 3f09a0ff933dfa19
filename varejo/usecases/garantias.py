# varejo/usecases/garantias.py
"""
UC: Garantias e tratativas.

Garantia nasce na finalização da venda (uma por aparelho) ou manualmente.
Tipos de tratativa:
- Direcionado Apple: só registro;
- Encaminhado Assistência: abre OS no setor GARANTIA;
- Assistência + Empréstimo: abre OS e empresta um aparelho do estoque;
- Troca Direta: aparelho de troca sai do estoque, o defeituoso vai para triagem.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from varejo.adapters.parsers import normalizar_imei
from varejo.config import DB_PATH, DEFAULTS, RegrasNegocio
from varejo.domain.calculos import _como_data, carimbo, data_fim_garantia, dias_sla, dinheiro, status_expiracao
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_GARANTIA, FLUXO_TRATATIVA
from varejo.domain.models import (
    ContaRazao,
    StatusAparelho,
    StatusGarantia,
    StatusOS,
    StatusTratativa,
    TipoTratativa,
)
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, operacao
from varejo.infra.repositories import AparelhoRepo, GarantiaRepo, OSRepo, ParamsRepo, TimelineRepo, gerar_id
from .estoque_aparelhos import alterar_status_aparelho, enviar_para_triagem, exigir_aparelho, registrar_aparelho
from .financeiro import lancar
from .ordens_servico import criar_os
from .transicoes import transicionar


TIPO_GARANTIA_APPLE = "Garantia - Apple"
TIPO_GARANTIA_LOJA = "Garantia - Loja"


def _exigir_garantia(conn: sqlite3.Connection, garantia_id: str) -> Dict[str, Any]:
    garantia = GarantiaRepo(conn).get(garantia_id)
    if not garantia:
        raise RegistroNaoEncontrado("Garantia", garantia_id)
    return garantia


def _exigir_tratativa(conn: sqlite3.Connection, tratativa_id: str) -> Dict[str, Any]:
    tratativa = GarantiaRepo(conn).get_tratativa(tratativa_id)
    if not tratativa:
        raise RegistroNaoEncontrado("Tratativa", tratativa_id)
    return tratativa


def _evento(conn, garantia_id: str, tipo: str, descricao: str, quando: str, responsavel=None) -> None:
    TimelineRepo(conn).registrar("garantia", garantia_id, tipo, descricao, quando, responsavel)


# -------------------------
# Registro
# -------------------------

def registrar_garantia_conn(
    conn: sqlite3.Connection,
    imei: str,
    categoria: str,
    quando: str,
    modelo: Optional[str] = None,
    cliente: Optional[str] = None,
    loja_id: Optional[str] = None,
    venda_id: Optional[str] = None,
    aparelho_id: Optional[str] = None,
    tipo: Optional[str] = None,
    meses: Optional[int] = None,
    data_inicio: Optional[str] = None,
    regras: RegrasNegocio = DEFAULTS,
) -> Dict[str, Any]:
    """Cria a garantia na conexão corrente.

    Novo: Garantia - Apple (12 meses). Seminovo: Garantia - Loja (3 meses).
    Um IMEI tem no máximo uma garantia Ativa/Em Tratativa.
    """
    imei = normalizar_imei(imei)
    aberta = GarantiaRepo(conn).aberta_por_imei(imei)
    if aberta:
        raise RegraViolada(f"IMEI {imei} já possui garantia aberta ({aberta['id']})")

    seminovo = categoria == "Seminovo"
    if tipo is None:
        tipo = TIPO_GARANTIA_LOJA if seminovo else TIPO_GARANTIA_APPLE
    if meses is None:
        meses = regras.meses_garantia_seminovo if seminovo else regras.meses_garantia_novo
    if int(meses) <= 0:
        raise RegraViolada("Meses de garantia deve ser positivo")

    inicio = _como_data(data_inicio or quando)
    garantia = {
        "id": gerar_id(conn, "GAR", 4),
        "imei": imei,
        "aparelho_id": aparelho_id,
        "modelo": modelo,
        "cliente": cliente,
        "loja_id": loja_id,
        "venda_id": venda_id,
        "tipo": tipo,
        "meses": int(meses),
        "data_inicio": inicio.isoformat(),
        "data_fim": data_fim_garantia(inicio, int(meses)).isoformat(),
        "status": StatusGarantia.ATIVA,
        "data_registro": quando,
    }
    GarantiaRepo(conn).insert(garantia)
    if venda_id:
        _evento(conn, garantia["id"], "registro_venda",
                f"Garantia da venda {venda_id} ({tipo}, {meses} meses)", quando)
    else:
        _evento(conn, garantia["id"], "abertura_garantia", f"Garantia registrada ({tipo}, {meses} meses)", quando)
    log_evento("assistencia", "garantia", garantia["id"], imei=imei, tipo=tipo)
    return garantia


def registrar_garantia(
    imei: str,
    categoria: str = "Novo",
    modelo: Optional[str] = None,
    cliente: Optional[str] = None,
    loja_id: Optional[str] = None,
    data_inicio: Optional[str] = None,
    tipo: Optional[str] = None,
    meses: Optional[int] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Registro manual (aparelho vendido antes do sistema, por exemplo)."""
    regras = ParamsRepo(db_path).regras()
    quando = carimbo(agora)
    with operacao("garantia_registrar", {"imei": imei, "categoria": categoria}) as ctx:
        with connect(db_path, imediato=True) as c:
            aparelho = AparelhoRepo(c).get_by_imei(normalizar_imei(imei))
            garantia = registrar_garantia_conn(
                c, imei, categoria, quando, modelo=modelo or (aparelho or {}).get("modelo"),
                cliente=cliente, loja_id=loja_id, aparelho_id=(aparelho or {}).get("id"),
                tipo=tipo, meses=meses, data_inicio=data_inicio, regras=regras,
            )
        ctx["resultado"] = garantia["id"]
    return garantia


# -------------------------
# Tratativas
# -------------------------

def abrir_tratativa(
    garantia_id: str,
    tipo: str,
    descricao: str,
    responsavel: str,
    imei_emprestimo: Optional[str] = None,
    imei_troca: Optional[str] = None,
    tecnico: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    if tipo not in TipoTratativa.TODOS:
        raise RegraViolada(f"Tipo de tratativa inválido: {tipo}")
    if tipo == TipoTratativa.ASSISTENCIA_EMPRESTIMO and not imei_emprestimo:
        raise RegraViolada("Empréstimo exige o IMEI do aparelho emprestado")
    if tipo == TipoTratativa.TROCA_DIRETA and not imei_troca:
        raise RegraViolada("Troca direta exige o IMEI do aparelho de troca")

    quando = carimbo(agora)
    with operacao("tratativa_abrir", {"garantia": garantia_id, "tipo": tipo}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = GarantiaRepo(c)
            garantia = _exigir_garantia(c, garantia_id)
            if garantia["status"] != StatusGarantia.ATIVA:
                raise RegraViolada(f"Garantia {garantia_id} está '{garantia['status']}'")
            if status_expiracao(garantia["data_fim"], quando)["status"] == "expirada":
                raise RegraViolada(f"Garantia {garantia_id} expirou em {garantia['data_fim']}")
            if repo.tratativas(garantia_id, StatusTratativa.EM_ANDAMENTO):
                raise RegraViolada(f"Garantia {garantia_id} já possui tratativa em andamento")

            tratativa = {
                "id": gerar_id(c, "TRAT", 4),
                "garantia_id": garantia_id,
                "tipo": tipo,
                "descricao": descricao,
                "status": StatusTratativa.EM_ANDAMENTO,
                "os_id": None,
                "imei_emprestimo": None,
                "imei_troca": None,
                "responsavel": responsavel,
                "data_abertura": quando,
            }

            if tipo in (TipoTratativa.ENCAMINHADO_ASSISTENCIA, TipoTratativa.ASSISTENCIA_EMPRESTIMO):
                ordem = criar_os(c, garantia["cliente"] or "Cliente garantia", garantia["loja_id"], "GARANTIA",
                                 descricao, quando, imei=garantia["imei"], tecnico=tecnico,
                                 modelo=garantia["modelo"], garantia_id=garantia_id, responsavel=responsavel)
                tratativa["os_id"] = ordem["id"]
                _evento(c, garantia_id, "os_criada", f"OS {ordem['id']} aberta", quando, responsavel)

            if tipo == TipoTratativa.ASSISTENCIA_EMPRESTIMO:
                emprestado = exigir_aparelho(c, imei_emprestimo)
                alterar_status_aparelho(c, emprestado, (StatusAparelho.DISPONIVEL,), StatusAparelho.EMPRESTADO,
                                        tratativa["id"], quando, f"Empréstimo {tratativa['id']}")
                tratativa["imei_emprestimo"] = emprestado["imei"]
                _evento(c, garantia_id, "emprestimo", f"Aparelho {emprestado['imei']} emprestado", quando,
                        responsavel)

            if tipo == TipoTratativa.TROCA_DIRETA:
                _trocar_aparelho(c, garantia, tratativa, imei_troca, quando, responsavel)

            repo.insert_tratativa(tratativa)
            _evento(c, garantia_id, "tratativa", f"{tipo}: {descricao}", quando, responsavel)
            transicionar(c, "garantia", garantia, FLUXO_GARANTIA, StatusGarantia.EM_TRATATIVA, quando, responsavel)
        ctx["resultado"] = tratativa["id"]
    return tratativa


def _trocar_aparelho(c, garantia, tratativa, imei_troca, quando, responsavel) -> None:
    """Aparelho de troca sai do estoque (custo para CMV); o defeituoso entra em triagem sem custo."""
    novo = exigir_aparelho(c, imei_troca)
    alterar_status_aparelho(c, novo, (StatusAparelho.DISPONIVEL,), StatusAparelho.VENDIDO,
                            tratativa["id"], quando, f"Troca em garantia {garantia['id']}")
    custo = dinheiro(novo["valor_custo"])
    if custo > 0:
        lancar(c, f"Troca em garantia {garantia['id']}", [(ContaRazao.CMV, ContaRazao.ESTOQUE, custo)],
               quando, "tratativa", tratativa["id"])
    tratativa["imei_troca"] = novo["imei"]

    defeituoso = registrar_aparelho(c, {
        "imei": garantia["imei"],
        "modelo": garantia["modelo"],
        "categoria": "Seminovo",
        "valor_custo": 0,
        "loja_id": garantia["loja_id"],
        "status": StatusAparelho.EM_TRIAGEM,
        "origem": "Troca Garantia",
        "origem_ref": tratativa["id"],
    }, quando)
    enviar_para_triagem(c, defeituoso, "Troca Garantia", tratativa["id"], quando)
    _evento(c, garantia["id"], "troca", f"Troca: {garantia['imei']} -> {novo['imei']}", quando, responsavel)


def concluir_tratativa(
    tratativa_id: str,
    responsavel: str,
    descricao: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Conclui a tratativa e a garantia; devolve ao estoque o aparelho emprestado."""
    quando = carimbo(agora)
    with operacao("tratativa_concluir", {"tratativa": tratativa_id}):
        with connect(db_path, imediato=True) as c:
            tratativa = _exigir_tratativa(c, tratativa_id)
            garantia = _exigir_garantia(c, tratativa["garantia_id"])
            if tratativa["os_id"]:
                ordem = OSRepo(c).get(tratativa["os_id"])
                if ordem and ordem["status"] in StatusOS.ATIVOS:
                    raise RegraViolada(f"OS {ordem['id']} ainda está '{ordem['status']}'")

            tratativa = transicionar(c, "tratativa", tratativa, FLUXO_TRATATIVA, StatusTratativa.CONCLUIDO,
                                     quando, responsavel, descricao, data_conclusao=quando)
            if tratativa["imei_emprestimo"]:
                emprestado = exigir_aparelho(c, tratativa["imei_emprestimo"])
                alterar_status_aparelho(c, emprestado, (StatusAparelho.EMPRESTADO,), StatusAparelho.DISPONIVEL,
                                        None, quando, f"Devolução do empréstimo {tratativa_id}")
                _evento(c, garantia["id"], "devolucao", f"Aparelho {emprestado['imei']} devolvido", quando,
                        responsavel)
            transicionar(c, "garantia", garantia, FLUXO_GARANTIA, StatusGarantia.CONCLUIDA, quando, responsavel)
            _evento(c, garantia["id"], "conclusao", descricao or "Tratativa concluída", quando, responsavel)
            return tratativa


# -------------------------
# Expiração e consultas
# -------------------------

def atualizar_expiradas(hoje: Optional[datetime] = None, db_path: str = DB_PATH) -> int:
    """Ativa -> Expirada para garantias com data_fim no passado."""
    quando = carimbo(hoje)
    with connect(db_path, imediato=True) as c:
        vencidas = GarantiaRepo(c).ativas_vencidas(quando[:10])
        for g in vencidas:
            transicionar(c, "garantia", g, FLUXO_GARANTIA, StatusGarantia.EXPIRADA, quando, "Sistema",
                         f"Garantia expirada em {g['data_fim']}")
    log_evento("assistencia", "garantias_expiradas", quando[:10], total=len(vencidas))
    return len(vencidas)


def listar_garantias(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        return GarantiaRepo(c).listar(status)


def listar_expirando(hoje: Optional[datetime] = None, db_path: str = DB_PATH) -> Dict[str, List[Dict[str, Any]]]:
    """Garantias ativas que vencem em 0-7 dias (urgente) e 8-30 dias (atencao)."""
    hoje = hoje or datetime.now()
    out: Dict[str, List[Dict[str, Any]]] = {"urgente": [], "atencao": []}
    for g in listar_garantias(StatusGarantia.ATIVA, db_path):
        exp = status_expiracao(g["data_fim"], hoje)
        if exp["status"] in out:
            out[exp["status"]].append({**g, "dias_restantes": exp["dias_restantes"]})
    return out


def contadores(hoje: Optional[datetime] = None, db_path: str = DB_PATH) -> Dict[str, int]:
    hoje = hoje or datetime.now()
    with connect(db_path) as c:
        em_andamento = GarantiaRepo(c).tratativas(status=StatusTratativa.EM_ANDAMENTO)
    return {
        "em_andamento": len(em_andamento),
        "aparelhos_emprestados": sum(1 for t in em_andamento if t["imei_emprestimo"]),
        "em_assistencia": sum(1 for t in em_andamento if t["os_id"]),
        "mais_de_7_dias": sum(1 for t in em_andamento if dias_sla(t["data_abertura"], hoje) > 7),
    }


def timeline_garantia(garantia_id: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Eventos da garantia e de suas tratativas em ordem cronológica."""
    with connect(db_path) as c:
        _exigir_garantia(c, garantia_id)
        timeline = TimelineRepo(c)
        eventos = timeline.listar("garantia", garantia_id)
        for t in GarantiaRepo(c).tratativas(garantia_id):
            eventos.extend(timeline.listar("tratativa", t["id"]))
    return sorted(eventos, key=lambda e: (e["data"], e["id"]))
