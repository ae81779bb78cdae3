"""MySQL scram_credentials table (salt, iterations, StoredKey, ServerKey; no passwords)."""

import os
from typing import Optional

import mysql.connector

from scram.storage.records import Credential


# -------------------- CONNECTION HELPERS -------------------- #

def get_conn():
    """Create a new MySQL connection using environment variables."""
    return mysql.connector.connect(
        host=os.getenv("DB_HOST", "127.0.0.1"),
        port=int(os.getenv("DB_PORT", 3306)),
        user=os.getenv("DB_USER", "root"),
        password=os.getenv("DB_PASS", ""),
        database=os.getenv("DB_NAME", "scram")
    )


# -------------------- SCHEMA INITIALIZATION -------------------- #

def init_schema():
    """Create scram_credentials table if it doesn't exist."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("""
        CREATE TABLE IF NOT EXISTS scram_credentials (
            id INT AUTO_INCREMENT PRIMARY KEY,
            username VARCHAR(255) UNIQUE,
            salt VARBINARY(64),
            iterations INT,
            stored_key BINARY(20),
            server_key BINARY(20)
        )
    """)
    conn.commit()
    cur.close()
    conn.close()


# -------------------- CREDENTIAL STORE -------------------- #

class MySQLCredentialStore:
    """
    Credential store over the scram_credentials table.
    Each call opens and closes its own connection.
    """

    def __init__(self, connect=get_conn):
        self._connect = connect

    def save(self, username: str, salt: bytes, iterations: int,
             stored_key: bytes, server_key: bytes) -> None:
        """Insert or replace the record for username."""
        conn = self._connect()
        cur = conn.cursor()
        try:
            cur.execute(
                "INSERT INTO scram_credentials (username, salt, iterations, stored_key, server_key) "
                "VALUES (%s, %s, %s, %s, %s) "
                "ON DUPLICATE KEY UPDATE salt = VALUES(salt), iterations = VALUES(iterations), "
                "stored_key = VALUES(stored_key), server_key = VALUES(server_key)",
                (username, salt, iterations, stored_key, server_key)
            )
            conn.commit()
        finally:
            cur.close()
            conn.close()

    def lookup(self, username: str) -> Optional[Credential]:
        """Return the credential record or None."""
        conn = self._connect()
        cur = conn.cursor()
        try:
            cur.execute(
                "SELECT username, salt, iterations, stored_key, server_key "
                "FROM scram_credentials WHERE username = %s",
                (username,)
            )
            row = cur.fetchone()
        finally:
            cur.close()
            conn.close()

        if not row:
            return None

        return Credential(
            username=row[0],
            salt=bytes(row[1]),
            iterations=int(row[2]),
            stored_key=bytes(row[3]),
            server_key=bytes(row[4]),
        )
