# varejo/usecases/notas_entrada.py
"""
UC: Nota de Entrada (compra de fornecedor) com pagamento e conferência.

Fluxo:
1) criar_nota -> Criada -> (Aguardando Pagamento Inicial | Aguardando Conferencia)
2) cadastrar_produtos (ou planilha XLSX)
3) registrar_pagamento  (Financeiro)   D FORNECEDORES / C conta
4) conferir_produto     (Estoque)      D ESTOQUE / C FORNECEDORES
   - aparelho Novo entra 'Disponivel'; Seminovo entra 'Em Triagem' + pendente
   - acessório soma ao estoque (obter ou criar por descrição + loja)
5) conferência completa -> Conferencia Concluida | Com Divergencia
6) pagamento final / resolução de divergência -> Finalizada
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from varejo.adapters.planilhas import load_produtos_nota_from_xlsx
from varejo.config import DB_PATH
from varejo.domain.calculos import Numero, ZERO, carimbo, dinheiro, houve_divergencia, verificar_alertas_nota
from varejo.domain.erros import RegistroNaoEncontrado, RegraViolada
from varejo.domain.fluxos import FLUXO_NOTA, exigir_permissao_nota
from varejo.domain.models import ContaRazao, ProdutoNota, StatusAparelho, StatusNota, TipoPagamentoNota
from varejo.infra.db import connect
from varejo.infra.logger import log_evento, log_file_operation, operacao
from varejo.infra.repositories import NotaRepo, ParamsRepo, TimelineRepo, gerar_id
from .acessorios import entrada_acessorio, obter_ou_criar_acessorio
from .estoque_aparelhos import enviar_para_triagem, exigir_imei_valido, registrar_aparelho
from .financeiro import exigir_conta, lancar
from .transicoes import transicionar


TIPOS_PRODUTO = ("Aparelho", "Acessorio")


# -------------------------
# Helpers
# -------------------------

def _exigir_nota(conn: sqlite3.Connection, nota_id: str) -> Dict[str, Any]:
    nota = NotaRepo(conn).get(nota_id)
    if not nota:
        raise RegistroNaoEncontrado("Nota", nota_id)
    return nota


def _pendente(nota: Dict[str, Any]) -> Decimal:
    return dinheiro(nota["valor_total"]) - dinheiro(nota["valor_pago"])


def _mover(conn, nota, novo, quando, responsavel, descricao=None, impacto=None, **campos):
    """Transição de nota; `data_status` acompanha toda mudança de status."""
    return transicionar(conn, "nota", nota, FLUXO_NOTA, novo, quando, responsavel, descricao, impacto,
                        data_status=quando, **campos)


def _produto_dict(p: Union[ProdutoNota, Dict[str, Any]]) -> Dict[str, Any]:
    dados = asdict(p) if is_dataclass(p) else dict(p)
    tipo = dados.get("tipo_produto") or "Aparelho"
    if tipo not in TIPOS_PRODUTO:
        raise RegraViolada(f"Tipo de produto inválido: {tipo}")
    if not (dados.get("modelo") or "").strip():
        raise RegraViolada("Modelo do produto é obrigatório")
    quantidade = int(dados.get("quantidade") or 0)
    if quantidade <= 0:
        raise RegraViolada(f"Quantidade inválida para {dados['modelo']}: {quantidade}")
    custo = dinheiro(dados.get("custo_unitario"))
    if custo <= 0:
        raise RegraViolada(f"Custo unitário inválido para {dados['modelo']}: {custo}")
    return {
        "tipo_produto": tipo,
        "marca": dados.get("marca"),
        "modelo": dados["modelo"].strip(),
        "categoria": dados.get("categoria") or "Novo",
        "cor": dados.get("cor"),
        "capacidade": dados.get("capacidade"),
        "quantidade": quantidade,
        "custo_unitario": custo,
        "custo_total": dinheiro(custo * quantidade),
    }


def _totais_produtos(produtos: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "quantidade": sum(int(p["quantidade"]) for p in produtos),
        "conferida": sum(int(p["qtd_conferida"] or 0) for p in produtos),
        "valor": dinheiro(sum((dinheiro(p["custo_total"]) for p in produtos), ZERO)),
    }


# -------------------------
# Criação e produtos
# -------------------------

def criar_nota(
    fornecedor: str,
    loja_id: str,
    tipo_pagamento: str,
    valor_total: Optional[Numero] = None,
    qtd_informada: int = 0,
    numero: Optional[str] = None,
    responsavel: Optional[str] = None,
    observacoes: Optional[str] = None,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Cria a nota e a encaminha para pagamento inicial ou direto para conferência (Pos)."""
    if tipo_pagamento not in TipoPagamentoNota.TODOS:
        raise RegraViolada(f"Tipo de pagamento inválido: {tipo_pagamento}")
    if not (fornecedor or "").strip():
        raise RegraViolada("Fornecedor é obrigatório")
    if int(qtd_informada or 0) < 0:
        raise RegraViolada("Quantidade informada não pode ser negativa")
    informado = valor_total is not None
    total = dinheiro(valor_total)
    if informado and total <= 0:
        raise RegraViolada("Valor total informado deve ser positivo")

    quando = carimbo(agora)
    with operacao("nota_criar", {"fornecedor": fornecedor, "loja": loja_id, "tipo": tipo_pagamento}) as ctx:
        with connect(db_path, imediato=True) as c:
            nota = {
                "id": gerar_id(c, "NE", 5, ano=int(quando[:4])),
                "numero": numero,
                "fornecedor": fornecedor.strip(),
                "loja_id": loja_id,
                "tipo_pagamento": tipo_pagamento,
                "tipo_pagamento_bloqueado": 0,
                "status": StatusNota.CRIADA,
                "data_status": quando,
                "valor_total": total,
                "valor_total_informado": 1 if informado else 0,
                "valor_pago": ZERO,
                "valor_conferido": ZERO,
                "qtd_informada": int(qtd_informada or 0),
                "qtd_cadastrada": 0,
                "qtd_conferida": 0,
                "responsavel": responsavel,
                "observacoes": observacoes,
                "data_criacao": quando,
            }
            NotaRepo(c).insert(nota)
            TimelineRepo(c).registrar("nota", nota["id"], "criacao", f"Nota criada ({fornecedor})", quando,
                                      responsavel, status_novo=StatusNota.CRIADA)
            if tipo_pagamento == TipoPagamentoNota.POS:
                proximo = StatusNota.AGUARDANDO_CONFERENCIA
            else:
                proximo = StatusNota.AGUARDANDO_PAGAMENTO_INICIAL
            nota = _mover(c, nota, proximo, quando, responsavel)
        ctx["resultado"] = nota["id"]
    log_evento("notas", "criar", nota["id"], tipo=tipo_pagamento, status=nota["status"])
    return nota


def alterar_tipo_pagamento(
    nota_id: str,
    novo_tipo: str,
    responsavel: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Troca Antecipado <-> Parcial enquanto nenhum pagamento foi registrado."""
    if novo_tipo not in TipoPagamentoNota.TODOS:
        raise RegraViolada(f"Tipo de pagamento inválido: {novo_tipo}")
    quando = carimbo(agora)
    with connect(db_path, imediato=True) as c:
        nota = _exigir_nota(c, nota_id)
        if nota["tipo_pagamento_bloqueado"]:
            raise RegraViolada("Tipo de pagamento bloqueado após o primeiro pagamento")
        pos = TipoPagamentoNota.POS
        if (nota["tipo_pagamento"] == pos) != (novo_tipo == pos):
            raise RegraViolada("Troca entre pagamento Pos e antecipado/parcial exige uma nova nota")
        NotaRepo(c).update(nota_id, tipo_pagamento=novo_tipo)
        TimelineRepo(c).registrar("nota", nota_id, "tipo_pagamento",
                                  f"{nota['tipo_pagamento']} -> {novo_tipo}", quando, responsavel)
        return {**nota, "tipo_pagamento": novo_tipo}


def cadastrar_produtos(
    nota_id: str,
    produtos: Iterable[Union[ProdutoNota, Dict[str, Any]]],
    responsavel: Optional[str] = None,
    perfil: str = "Estoque",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Inclui produtos; cadastrar além da quantidade informada gera alerta mas é aceito."""
    novos = [_produto_dict(p) for p in produtos]
    if not novos:
        raise RegraViolada("Nenhum produto informado")
    quando = carimbo(agora)
    with operacao("nota_produtos", {"nota": nota_id, "itens": len(novos)}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = NotaRepo(c)
            nota = _exigir_nota(c, nota_id)
            exigir_permissao_nota(nota["status"], "cadastrar", perfil)
            for p in novos:
                repo.insert_produto({"nota_id": nota_id, **p})

            totais = _totais_produtos(repo.produtos(nota_id))
            changes: Dict[str, Any] = {"qtd_cadastrada": totais["quantidade"]}
            if not nota["valor_total_informado"]:
                changes["valor_total"] = totais["valor"]
            repo.update(nota_id, **changes)
            nota.update(changes)

            informada = int(nota["qtd_informada"] or 0)
            if informada and totais["quantidade"] > informada:
                abertos = [a for a in repo.alertas(nota_id, somente_abertos=True) if a["tipo"] == "qtd_excedida"]
                if not abertos:
                    repo.insert_alerta(nota_id, "qtd_excedida",
                                       f"Cadastrados {totais['quantidade']} de {informada} informados", quando)
            TimelineRepo(c).registrar("nota", nota_id, "produtos",
                                      f"{len(novos)} produto(s) cadastrado(s)", quando, responsavel)
        ctx["resultado"] = totais["quantidade"]
    return nota


def cadastrar_produtos_planilha(
    nota_id: str,
    path: str,
    responsavel: Optional[str] = None,
    perfil: str = "Estoque",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    produtos = load_produtos_nota_from_xlsx(path)
    log_file_operation("read_xlsx", path, len(produtos), nota=nota_id)
    return cadastrar_produtos(nota_id, produtos, responsavel, perfil, db_path, agora)


# -------------------------
# Pagamento
# -------------------------

def registrar_pagamento(
    nota_id: str,
    valor: Numero,
    conta_id: str,
    forma: str = "Pix",
    responsavel: Optional[str] = None,
    perfil: str = "Financeiro",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Pagamento ao fornecedor (D FORNECEDORES / C conta) e avanço do fluxo."""
    valor = dinheiro(valor)
    quando = carimbo(agora)
    with operacao("nota_pagamento", {"nota": nota_id, "valor": str(valor), "conta": conta_id}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = NotaRepo(c)
            nota = _exigir_nota(c, nota_id)
            exigir_permissao_nota(nota["status"], "pagar", perfil)
            if dinheiro(nota["valor_total"]) <= 0:
                raise RegraViolada("Nota sem valor total; cadastre os produtos antes de pagar")
            if valor <= 0:
                raise RegraViolada("Valor do pagamento deve ser positivo")
            pendente = _pendente(nota)
            if valor > pendente:
                raise RegraViolada(f"Pagamento {valor} excede o valor pendente {pendente}")
            exigir_conta(c, conta_id)

            inicial = nota["status"] == StatusNota.AGUARDANDO_PAGAMENTO_INICIAL
            trx = lancar(c, f"Pagamento nota {nota_id} ({nota['fornecedor']})",
                         [(ContaRazao.FORNECEDORES, conta_id, valor)], quando, "nota", nota_id)
            repo.insert_pagamento({
                "nota_id": nota_id,
                "tipo": "inicial" if inicial else "final",
                "valor": valor,
                "forma": forma,
                "conta_id": conta_id,
                "responsavel": responsavel,
                "transacao_id": trx,
                "data": quando,
            })
            pago = dinheiro(nota["valor_pago"]) + valor
            repo.update(nota_id, valor_pago=pago, tipo_pagamento_bloqueado=1)
            nota.update(valor_pago=pago, tipo_pagamento_bloqueado=1)
            quitado = pago >= dinheiro(nota["valor_total"])

            if inicial:
                if quitado:
                    nota = _mover(c, nota, StatusNota.PAGAMENTO_CONCLUIDO, quando, responsavel, impacto=valor)
                    nota = _mover(c, nota, StatusNota.AGUARDANDO_CONFERENCIA, quando, responsavel)
                elif nota["tipo_pagamento"] == TipoPagamentoNota.PARCIAL:
                    nota = _mover(c, nota, StatusNota.PAGAMENTO_PARCIAL, quando, responsavel, impacto=valor)
                    nota = _mover(c, nota, StatusNota.AGUARDANDO_CONFERENCIA, quando, responsavel)
                else:
                    TimelineRepo(c).registrar("nota", nota_id, "pagamento", f"Pagamento parcial {valor}",
                                              quando, responsavel, impacto_financeiro=valor)
            elif quitado:
                nota = _mover(c, nota, StatusNota.FINALIZADA, quando, responsavel, "Pagamento final quitado",
                              valor, data_finalizacao=quando)
            elif nota["status"] == StatusNota.CONFERENCIA_CONCLUIDA:
                nota = _mover(c, nota, StatusNota.AGUARDANDO_PAGAMENTO_FINAL, quando, responsavel, impacto=valor)
            else:
                TimelineRepo(c).registrar("nota", nota_id, "pagamento", f"Pagamento final parcial {valor}",
                                          quando, responsavel, impacto_financeiro=valor)
        ctx["resultado"] = trx
    log_evento("notas", "pagamento", nota_id, valor=str(valor), status=nota["status"])
    return nota


# -------------------------
# Conferência
# -------------------------

def _concluir_conferencia(conn, nota: Dict[str, Any], quando: str, responsavel: Optional[str], regras) -> Dict[str, Any]:
    if houve_divergencia(nota["valor_total"], nota["valor_conferido"], nota["valor_pago"], regras):
        mensagem = (f"Total {dinheiro(nota['valor_total'])}, conferido {dinheiro(nota['valor_conferido'])}, "
                    f"pago {dinheiro(nota['valor_pago'])}")
        NotaRepo(conn).insert_alerta(nota["id"], "divergencia_valor", mensagem, quando)
        return _mover(conn, nota, StatusNota.COM_DIVERGENCIA, quando, responsavel, f"Divergência: {mensagem}")

    nota = _mover(conn, nota, StatusNota.CONFERENCIA_CONCLUIDA, quando, responsavel)
    if _pendente(nota) <= 0:
        return _mover(conn, nota, StatusNota.FINALIZADA, quando, "Sistema", data_finalizacao=quando)
    return _mover(conn, nota, StatusNota.AGUARDANDO_PAGAMENTO_FINAL, quando, "Sistema")


def conferir_produto(
    nota_id: str,
    produto_id: int,
    imei: Optional[str] = None,
    quantidade: int = 1,
    responsavel: Optional[str] = None,
    perfil: str = "Estoque",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Confere uma unidade (aparelho, por IMEI) ou uma quantidade (acessório)."""
    quando = carimbo(agora)
    regras = ParamsRepo(db_path).regras()
    with operacao("nota_conferir", {"nota": nota_id, "produto": produto_id, "imei": imei}) as ctx:
        with connect(db_path, imediato=True) as c:
            repo = NotaRepo(c)
            nota = _exigir_nota(c, nota_id)
            exigir_permissao_nota(nota["status"], "conferir", perfil)
            produto = repo.get_produto(produto_id)
            if not produto or produto["nota_id"] != nota_id:
                raise RegistroNaoEncontrado("Produto da nota", f"{nota_id}/{produto_id}")
            restante = int(produto["quantidade"]) - int(produto["qtd_conferida"] or 0)
            if restante <= 0:
                raise RegraViolada(f"Produto {produto['modelo']} já foi totalmente conferido")

            conferencia: Dict[str, Any] = {
                "nota_id": nota_id, "produto_id": produto_id, "responsavel": responsavel, "data": quando,
            }
            if produto["tipo_produto"] == "Aparelho":
                if not imei:
                    raise RegraViolada("Conferência de aparelho exige IMEI")
                digitos = exigir_imei_valido(imei)
                if repo.imei_na_nota(nota_id, digitos):
                    raise RegraViolada(f"IMEI {digitos} já conferido nesta nota")
                qtd = 1
                seminovo = produto["categoria"] == "Seminovo"
                aparelho = registrar_aparelho(c, {
                    "imei": digitos,
                    "marca": produto["marca"],
                    "modelo": produto["modelo"],
                    "cor": produto["cor"],
                    "capacidade": produto["capacidade"],
                    "categoria": produto["categoria"],
                    "valor_custo": produto["custo_unitario"],
                    "loja_id": nota["loja_id"],
                    "status": StatusAparelho.EM_TRIAGEM if seminovo else StatusAparelho.DISPONIVEL,
                    "origem": "Nota de Entrada",
                    "origem_ref": nota_id,
                }, quando)
                if seminovo:
                    enviar_para_triagem(c, aparelho, "Nota de Entrada", nota_id, quando)
                conferencia.update(imei=digitos, quantidade=1, aparelho_id=aparelho["id"])
            else:
                qtd = int(quantidade)
                if qtd <= 0 or qtd > restante:
                    raise RegraViolada(f"Quantidade {qtd} inválida; restam {restante} unidade(s)")
                descricao = " ".join(x for x in (produto["marca"], produto["modelo"]) if x)
                acessorio = obter_ou_criar_acessorio(c, descricao, nota["loja_id"], quando,
                                                     valor_custo=produto["custo_unitario"])
                entrada_acessorio(c, acessorio["id"], qtd, produto["custo_unitario"], nota_id, quando)
                conferencia.update(quantidade=qtd, acessorio_id=acessorio["id"])

            repo.insert_conferencia(conferencia)
            conferida = int(produto["qtd_conferida"] or 0) + qtd
            completo = conferida >= int(produto["quantidade"])
            repo.update_produto(
                produto_id,
                qtd_conferida=conferida,
                status_conferencia="Conferido" if completo else "Parcial",
                status_recebimento="Recebido" if completo else "Parcial",
            )

            valor = dinheiro(dinheiro(produto["custo_unitario"]) * qtd)
            lancar(c, f"Entrada em estoque nota {nota_id}: {produto['modelo']}",
                   [(ContaRazao.ESTOQUE, ContaRazao.FORNECEDORES, valor)], quando, "nota", nota_id)

            totais = _totais_produtos(repo.produtos(nota_id))
            valor_conferido = dinheiro(nota["valor_conferido"]) + valor
            campos = {
                "qtd_conferida": totais["conferida"],
                "valor_conferido": valor_conferido,
                "data_ultima_conferencia": quando,
            }
            nota = _mover(c, nota, StatusNota.CONFERENCIA_PARCIAL, quando, responsavel,
                          f"Conferido {qtd}x {produto['modelo']}", **campos)
            if totais["conferida"] >= totais["quantidade"]:
                nota = _concluir_conferencia(c, nota, quando, responsavel, regras)
        ctx["resultado"] = nota["status"]
    log_evento("notas", "conferir", nota_id, produto=produto_id, status=nota["status"])
    return nota


def resolver_divergencia(
    nota_id: str,
    responsavel: str,
    justificativa: str,
    perfil: str = "Gestor",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    if not (justificativa or "").strip():
        raise RegraViolada("Justificativa obrigatória para resolver divergência")
    quando = carimbo(agora)
    with operacao("nota_resolver_divergencia", {"nota": nota_id, "responsavel": responsavel}):
        with connect(db_path, imediato=True) as c:
            nota = _exigir_nota(c, nota_id)
            exigir_permissao_nota(nota["status"], "resolver_divergencia", perfil)
            NotaRepo(c).resolver_alertas(nota_id, "divergencia_valor", responsavel, quando)
            TimelineRepo(c).registrar("nota", nota_id, "divergencia_resolvida", justificativa, quando, responsavel)
            if _pendente(nota) > 0:
                return _mover(c, nota, StatusNota.AGUARDANDO_PAGAMENTO_FINAL, quando, responsavel)
            return _mover(c, nota, StatusNota.FINALIZADA, quando, responsavel, data_finalizacao=quando)


def pendencias_finalizacao(nota: Dict[str, Any], alertas_abertos: List[Dict[str, Any]]) -> List[str]:
    """Motivos que impedem a finalização normal da nota."""
    pendencias: List[str] = []
    esperado = int(nota["qtd_informada"] or 0) or int(nota["qtd_cadastrada"] or 0)
    if int(nota["qtd_conferida"] or 0) != esperado or not esperado:
        pendencias.append(f"conferidos {nota['qtd_conferida']} de {esperado}")
    if _pendente(nota) > 0:
        pendencias.append(f"pagamento pendente {_pendente(nota)}")
    if any(a["tipo"] == "divergencia_valor" for a in alertas_abertos):
        pendencias.append("divergência em aberto")
    return pendencias


def finalizar_nota(
    nota_id: str,
    responsavel: str,
    forcar: bool = False,
    perfil: str = "Financeiro",
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Finaliza a nota.

    Sem `forcar`, exige conferência completa, pagamento quitado e nenhuma
    divergência aberta. `forcar` é exclusivo do Gestor e aceita qualquer
    status não final; a finalização forçada fica registrada na timeline.
    """
    quando = carimbo(agora)
    with operacao("nota_finalizar", {"nota": nota_id, "forcar": forcar}):
        with connect(db_path, imediato=True) as c:
            repo = NotaRepo(c)
            nota = _exigir_nota(c, nota_id)
            exigir_permissao_nota(nota["status"], "finalizar", perfil)
            pendencias = pendencias_finalizacao(nota, repo.alertas(nota_id, somente_abertos=True))

            if not forcar:
                if pendencias:
                    raise RegraViolada(f"Nota {nota_id} não pode ser finalizada: {'; '.join(pendencias)}")
                return _mover(c, nota, StatusNota.FINALIZADA, quando, responsavel, data_finalizacao=quando)

            if perfil != "Gestor":
                raise RegraViolada("Finalização forçada é exclusiva do Gestor")
            cur = c.execute(
                "UPDATE nota_entrada SET status = ?, data_status = ?, data_finalizacao = ? "
                "WHERE id = ? AND status = ?",
                (StatusNota.FINALIZADA, quando, quando, nota_id, nota["status"]),
            )
            if cur.rowcount != 1:
                raise RegraViolada(f"Nota {nota_id} foi alterada por outra operação")
            TimelineRepo(c).registrar(
                "nota", nota_id, "finalizacao_forcada",
                f"Finalização forçada ({'; '.join(pendencias) or 'sem pendências'})",
                quando, responsavel, status_anterior=nota["status"], status_novo=StatusNota.FINALIZADA,
            )
            return {**nota, "status": StatusNota.FINALIZADA, "data_status": quando, "data_finalizacao": quando}


# -------------------------
# Consultas
# -------------------------

def alertas_nota(
    nota_id: str,
    db_path: str = DB_PATH,
    agora: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Alertas calculados agora mais os alertas registrados ainda abertos."""
    with connect(db_path) as c:
        repo = NotaRepo(c)
        nota = _exigir_nota(c, nota_id)
        calculados = verificar_alertas_nota(nota, repo.produtos(nota_id), agora or datetime.now(),
                                            ParamsRepo(db_path).regras())
        tipos = {a["tipo"] for a in calculados}
        registrados = [
            {"tipo": a["tipo"], "mensagem": a["mensagem"]}
            for a in repo.alertas(nota_id, somente_abertos=True)
            if a["tipo"] not in tipos
        ]
        return calculados + registrados


def listar_notas(status: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    with connect(db_path) as c:
        notas = NotaRepo(c).listar(status)
    for n in notas:
        n["valor_pendente"] = _pendente(n)
    return notas


def obter_nota(nota_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    with connect(db_path) as c:
        repo = NotaRepo(c)
        nota = _exigir_nota(c, nota_id)
        nota["valor_pendente"] = _pendente(nota)
        nota["produtos"] = repo.produtos(nota_id)
        nota["pagamentos"] = repo.pagamentos(nota_id)
        nota["conferencias"] = repo.conferencias(nota_id)
        nota["alertas"] = repo.alertas(nota_id)
        nota["timeline"] = TimelineRepo(c).listar("nota", nota_id)
        return nota
