"""Root entry point for hosts that run ``streamlit run streamlit_app.py``."""

from app.app import main

main()
