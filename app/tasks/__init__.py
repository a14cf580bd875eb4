"""Tareas Celery: correos, reportes y mantenimiento de adjuntos.

Los módulos se registran vía ``include`` en ``app.core.celery_app``.
"""
