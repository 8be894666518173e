"""Firebase service - credentials and Firestore client for the relay queue"""

import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials
from google.cloud import firestore

from .. import config

logger = logging.getLogger(__name__)


class FirebaseService:
    """Initializes firebase_admin once and hands out async Firestore clients"""

    def __init__(self, credentials_path: Optional[str] = None, project_id: Optional[str] = None):
        self.credentials_path = credentials_path or config.FIREBASE_CREDENTIALS_PATH
        self.project_id = project_id or config.FIREBASE_PROJECT_ID
        self.connected = False
        self._credential: Optional[credentials.Certificate] = None
        self._async_client: Optional[firestore.AsyncClient] = None

    def _resolve_credentials_path(self) -> str:
        cred_path = str(self.credentials_path)
        if os.path.exists(cred_path):
            return cred_path
        if not os.path.isabs(cred_path):
            home_path = os.path.expanduser(f"~/{cred_path}")
            if os.path.exists(home_path):
                return home_path
        raise FileNotFoundError(f"Firebase credentials not found at {cred_path}")

    def connect(self):
        """Initialize the Firebase app from the service account file"""
        try:
            cred_path = self._resolve_credentials_path()
            logger.info(f"Loading Firebase credentials from: {cred_path}")

            if not os.access(cred_path, os.R_OK):
                raise PermissionError(f"No read permission for Firebase credentials at {cred_path}")

            self._credential = credentials.Certificate(cred_path)
            if not firebase_admin._apps:
                options = {"projectId": self.project_id} if self.project_id else None
                firebase_admin.initialize_app(self._credential, options)

            self.project_id = self.project_id or self._credential.project_id
            self.connected = True
            logger.info(f"Connected to Firebase (project: {self.project_id})")
        except Exception as e:
            logger.error(f"Failed to connect to Firebase: {e}", exc_info=True)
            raise

    def async_client(self) -> firestore.AsyncClient:
        """Shared async Firestore client; connects on first use."""
        if self._async_client is None:
            if not self.connected:
                self.connect()
            self._async_client = firestore.AsyncClient(
                project=self.project_id,
                credentials=self._credential.get_credential(),
            )
        return self._async_client

    def disconnect(self):
        self._async_client = None
        self.connected = False
        logger.info("Disconnected from Firebase")
