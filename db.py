"""Supabase wiring. Client is cached via Streamlit; scripts use the uncached factory."""
import logging
import os

import streamlit as st
from dotenv import load_dotenv
from supabase import create_client, Client

from mcq_prep.database import SupabaseQuestionBank, SupabaseSessionRepository

load_dotenv()


def log_level() -> int:
    name = os.environ.get("MCQ_PREP_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_repository(client: Client | None = None) -> SupabaseSessionRepository:
    return SupabaseSessionRepository(client or get_supabase())


def get_question_bank(client: Client | None = None) -> SupabaseQuestionBank:
    return SupabaseQuestionBank(client or get_supabase())
