"""
Backup module for stagebackup.

This module handles the core backup functionality including:
- External command execution
- Remote file retrieval (ssh/scp)
- Retention policy enforcement
- Job orchestration
"""

from .executor import BackupManager, load_job
from .retention import ArchivePurger, PurgeWarning
from .retrievers import FileRetriever, RetrievalError, SSHFileRetriever, create_retriever, dated_filename
from .runner import CommandRunner, ExecutionError, ExecutionResult

__all__ = [
    'BackupManager',
    'load_job',
    'ArchivePurger',
    'PurgeWarning',
    'FileRetriever',
    'RetrievalError',
    'SSHFileRetriever',
    'create_retriever',
    'dated_filename',
    'CommandRunner',
    'ExecutionError',
    'ExecutionResult'
]
