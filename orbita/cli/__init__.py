"""
CLI: composición de comandos y salida con rich.
"""
