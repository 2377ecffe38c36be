"""Supabase clients for the Streamlit pages. Shared client is cached via Streamlit."""
import logging

import streamlit as st
from supabase import Client

from examhall.database import DatabaseClient, env_client

logger = logging.getLogger(__name__)


@st.cache_resource
def get_supabase() -> Client:
    return env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return env_client()


@st.cache_resource
def get_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())


def get_database_uncached() -> DatabaseClient:
    return DatabaseClient(get_supabase_uncached())


def get_auth_client() -> Client:
    """Per-browser-session client; auth state must not leak between users."""
    if "auth_client" not in st.session_state:
        st.session_state["auth_client"] = env_client()
    return st.session_state["auth_client"]
