"""
Pipeline Stage Handlers

One handler per non-terminal job status.
"""
from app.modules.pipeline.constants import StageName

from .scrape_launch import ScrapeLaunchStage
from .scrape_poll import ScrapePollStage
from .process_posts import ProcessPostsStage
from .vectorize import VectorizeStage
from .generate import GenerateStage
from .send import SendStage

STAGE_HANDLERS = {
    StageName.SCRAPE_LAUNCH: ScrapeLaunchStage,
    StageName.SCRAPE_POLL: ScrapePollStage,
    StageName.PROCESS_POSTS: ProcessPostsStage,
    StageName.VECTORIZE: VectorizeStage,
    StageName.GENERATE: GenerateStage,
    StageName.SEND: SendStage,
}

__all__ = [
    "STAGE_HANDLERS",
    "ScrapeLaunchStage",
    "ScrapePollStage",
    "ProcessPostsStage",
    "VectorizeStage",
    "GenerateStage",
    "SendStage",
]
