"""
Collaborator dependencies.
The GptClient lives on app.state (created in the app lifespan); tests
override these providers with fakes.
"""

from fastapi import Request

from generation.gpt_client import GptClient
from generation.question_generator import QuestionGenerator
from grading.ai_grader import TextAnswerGrader


def _gpt_client(request: Request) -> GptClient:
    client = getattr(request.app.state, "gpt_client", None)
    if client is None:
        client = GptClient.from_env()
        request.app.state.gpt_client = client
    return client


def get_question_generator(request: Request) -> QuestionGenerator:
    return QuestionGenerator(_gpt_client(request))


def get_text_grader(request: Request) -> TextAnswerGrader:
    return TextAnswerGrader(_gpt_client(request))
