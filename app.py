# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db armazem.db
  python app.py camara criar "Câmara 1" --quadras 2 --lados 2 --filas 2 --andares 2 --provisionar
  python app.py camara arvore 1
  python app.py produto importar produtos.xlsx --camara 1
  python app.py rel vencimentos --janela-dias 30
"""

from armazem.adapters.cli import main

if __name__ == "__main__":
    main()
