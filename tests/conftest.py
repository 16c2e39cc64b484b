import re
from typing import Callable, List, Optional, Sequence, Union

from llm_doc_grader.engine.providers import ProviderClient, ProviderGateway

Reply = Union[str, BaseException]


class FakeProviderClient(ProviderClient):
    """
    Scripted stand-in for a language-model service.

    Replies are served in order from a queue, or computed by a router from the
    prompt. Exceptions in either place are raised instead of returned. Every
    prompt is recorded.
    """

    def __init__(self, replies: Sequence[Reply] = (), router: Optional[Callable[[str], Reply]] = None) -> None:
        self.replies: List[Reply] = list(replies)
        self.router = router
        self.prompts: List[str] = []

    async def invoke(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.router is not None:
            reply = self.router(prompt)
        elif self.replies:
            reply = self.replies.pop(0)
        else:
            raise AssertionError(f"Unexpected provider call #{len(self.prompts)}")
        if isinstance(reply, BaseException):
            raise reply
        return reply


def tagged_router(scores, narrative: str = "Document A is sharper.") -> Callable[[str], Reply]:
    """
    Routes prompts by a tag word found in the document text.

    scores maps tag -> score (or an exception to raise). Final-check prompts
    carry no document text, so they echo the running score back.
    """

    def route(prompt: str) -> Reply:
        if "COMPARATIVE ANALYSIS INSTRUCTIONS" in prompt:
            return narrative
        final = re.search(r"Final score: (\d+)/100", prompt)
        if final:
            return f"Confirmed. {final.group(1)}/100"
        for tag, score in scores.items():
            if tag in prompt:
                if isinstance(score, BaseException):
                    return score
                return f"{tag} assessment: {score}/100"
        raise AssertionError("Prompt matched no routing tag")

    return route


def make_gateway(client: ProviderClient, provider: str = "openai", timeout_seconds: float = 5.0) -> ProviderGateway:
    return ProviderGateway({provider: client}, timeout_seconds=timeout_seconds)

