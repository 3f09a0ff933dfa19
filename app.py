# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db varejo.db
  python app.py params show
  python app.py nota criar --fornecedor "Distribuidora X" --loja LOJA-01 --tipo-pagamento Pos
  python app.py venda registrar venda.json
  python app.py financeiro balancete
"""

from varejo.adapters.cli import main

if __name__ == "__main__":
    main()
