# EduFlow Configuration
import os
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()


class Config:
    # LLM 설정
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
    OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o")
    OPENAI_CHAT_MODEL_MINI = os.getenv("OPENAI_CHAT_MODEL_MINI", "gpt-4o-mini")
    OPENAI_CHAT_MODEL_REASONING = os.getenv("OPENAI_CHAT_MODEL_REASONNING", "o3")
    OPENAI_CHAT_MODEL_REASONING_MINI = os.getenv("OPENAI_CHAT_MODEL_REASONNING_MINI", "o4-mini")
    OPENAI_TIMEOUT_MS = int(os.getenv("OPENAI_TIMEOUT_MS", "0"))

    LLM_TEMPERATURE = None  # reasoning 모델은 temperature 미지원

    # Neo4j 설정
    NEO4J_URI = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    NEO4J_USERNAME = os.getenv("NEO4J_USER", "neo4j")
    NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD", "")

    # 교재 검색 (Supabase edge function)
    TEXTBOOK_SEARCH_BASE_URL = os.getenv("BASE_URL", "")
    TEXTBOOK_SEARCH_TIMEOUT = 60.0

    # 문서 파싱 (MinerU)
    MINERU_BASE_URL = os.getenv("MINERU_BASE_URL", "")
    MINERU_API_KEY = os.getenv("MINERU_API_KEY", "")
    MINERU_VISION_PROVIDER = os.getenv("MINERU_VISION_PROVIDER", "")
    MINERU_VISION_MODEL = os.getenv("MINERU_VISION_MODEL", "")
    ARTIFACT_DOWNLOAD_TIMEOUT = 120.0
    MINERU_TIMEOUT = 300.0

    # 학생 포트레이트 저장소 (S3)
    STUDENT_PORTRAIT_BUCKET = os.getenv("STUDENT_PORTRAIT_BUCKET", "")
    STUDENT_PORTRAIT_BUCKET_REGION = os.getenv("STUDENT_PORTRAIT_BUCKET_REGION", "")
    STUDENT_PORTRAIT_BUCKET_ACCESS_KEY = os.getenv("STUDENT_PORTRAIT_BUCKET_ACCESS_KEY", "")
    STUDENT_PORTRAIT_BUCKET_SECRET_KEY = os.getenv("STUDENT_PORTRAIT_BUCKET_SECRET_KEY", "")

    # 서버 설정
    HOST = "0.0.0.0"
    PORT = int(os.getenv("PORT", "8000"))

    # 진행 상황 파일 저장 위치
    PROGRESS_DIR = os.getenv("PROGRESS_DIR", "data/progress")

    @classmethod
    def get_openai_timeout_seconds(cls):
        """OPENAI_TIMEOUT_MS가 설정된 경우에만 초 단위 타임아웃 반환"""
        if cls.OPENAI_TIMEOUT_MS > 0:
            return cls.OPENAI_TIMEOUT_MS / 1000
        return None
