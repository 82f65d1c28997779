# backend/app/inference.py
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

import numpy as np
from scipy.special import softmax

from .config import settings
from .errors import Unavailable
from .models import SentimentLabel

logger = logging.getLogger(__name__)

LABELS = ['negative', 'neutral', 'positive']

_model_lock = threading.Lock()
_tokenizer = None
_model = None


def _load_model():
    global _tokenizer, _model
    with _model_lock:
        if _model is None:
            # heavy import, only paid by the first review submission
            from transformers import AutoTokenizer, AutoModelForSequenceClassification
            logger.info("Loading sentiment model from %s", settings.SENTIMENT_MODEL_PATH)
            _tokenizer = AutoTokenizer.from_pretrained(settings.SENTIMENT_MODEL_PATH, local_files_only=True)
            _model = AutoModelForSequenceClassification.from_pretrained(
                settings.SENTIMENT_MODEL_PATH, local_files_only=True
            )
    return _tokenizer, _model


def scores_to_sentiment(scores):
    """Map [negative, neutral, positive] probabilities to (score, label).

    The score is the positivity P(positive) + P(neutral) / 2, so it stays in
    [0, 1]; the label is the most probable class.
    """
    scores = np.asarray(scores, dtype=float)
    idx = int(np.argmax(scores))
    score = float(scores[2] + 0.5 * scores[1])
    return min(max(score, 0.0), 1.0), LABELS[idx]


def predict(text: str):
    tokenizer, model = _load_model()
    enc = tokenizer(text, return_tensors="pt", truncation=True, max_length=256)
    out = model(**enc)
    scores = softmax(out.logits[0].detach().numpy())
    return scores_to_sentiment(scores)


def get_classifier():
    """FastAPI dependency returning the classify(text) -> (score, label) callable."""
    return predict


def classify_bounded(classify, text: str, timeout: float = None):
    """Run classify once, waiting at most `timeout` seconds.

    Each call gets its own worker thread, so the wait starts when the
    classifier starts and a hung call only ever pins its own thread.
    Any failure (exception, timeout, or a result outside the score/label
    contract) is raised as Unavailable.
    """
    timeout = settings.SENTIMENT_TIMEOUT_SECONDS if timeout is None else timeout
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sentiment")
    future = executor.submit(classify, text)
    try:
        score, label = future.result(timeout=timeout)
    except FutureTimeout as e:
        logger.warning("Sentiment classifier exceeded %.1fs", timeout)
        raise Unavailable("Sentiment analysis timed out") from e
    except Exception as e:
        raise Unavailable("Sentiment analysis failed") from e
    finally:
        executor.shutdown(wait=False)

    try:
        score = float(score)
        label = SentimentLabel(label)
    except (TypeError, ValueError) as e:
        raise Unavailable("Sentiment analysis returned an invalid result") from e
    if not 0.0 <= score <= 1.0:
        raise Unavailable("Sentiment score out of range")
    return score, label
