#!/usr/bin/env python3
"""Main entry point for the vision-guided contact scout"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"


def configure_logging(debug: bool = False):
    """stderr sink plus a rotating serialized JSON file sink"""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO", format=LOG_FORMAT)
    logger.add("logs/contact_scout_{time}.log", rotation="1 day", retention="7 days", level="DEBUG", serialize=True)


# Configure logger
configure_logging()

# Load environment variables
load_dotenv()

from contact_scout.agent.search import ContactSearchParams, estimate_steps
from contact_scout.agent.vision_agent import VisionAgent
from contact_scout.analytics.metrics import MetricsTracker
from contact_scout.browser.playwright_backend import PlaywrightBackend
from contact_scout.browser.port import BrowserControl
from contact_scout.browser.sanitize import mask_api_key
from contact_scout.config import Settings
from contact_scout.gateway.gemini_gateway import ModelGateway


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Vision-guided browser agent for finding contact information')
    parser.add_argument('--task', type=str, help='Free-form task for the agent (e.g. "Find investor emails for Acme")')
    parser.add_argument('--target', type=str, help='Company, person or organization to find contacts for')
    parser.add_argument('--contact-type', type=str, default='email',
                        choices=['email', 'phone', 'address', 'social', 'general'],
                        help='Type of contact to look for (default: email)')
    parser.add_argument('--location', type=str, help='Geographic location filter')
    parser.add_argument('--filters', type=str, help='Extra search terms (e.g. "investor", "press")')
    parser.add_argument('--depth', type=str, choices=['quick', 'thorough'], default='quick',
                        help='Analysis depth; thorough also reads contacts from screenshots')
    parser.add_argument('--max-results', type=int, default=5, help='Maximum contacts to return (1-10)')
    parser.add_argument('--url', type=str, help='Starting URL')
    parser.add_argument('--max-steps', type=int, help='Step budget (estimated from the task when omitted)')
    parser.add_argument('--headless', action='store_true', help='Run browser in headless mode (no UI)')
    parser.add_argument('--debug', action='store_true', help='Enable verbose logging')
    return parser


async def main():
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args()

    if not args.task and not args.target:
        parser.error("Either --task or --target is required")

    if args.debug:
        configure_logging(debug=True)
        logger.debug("DEBUG mode enabled (verbose logging active)")

    settings = Settings.from_env()
    if args.headless:
        settings.browser.headless = True
        logger.info("Running in HEADLESS mode (no browser UI)")

    if not settings.gateway.api_key:
        logger.error("Critical variables missing: ['GOOGLE_API_KEY']")
        return 1
    logger.info(f"Using Gemini API key {mask_api_key(settings.gateway.api_key)} (model: {settings.gateway.model})")

    params = None
    if args.target:
        try:
            params = ContactSearchParams(
                target=args.target,
                contact_type=args.contact_type,
                location=args.location,
                additional_filters=args.filters,
                analysis_depth=args.depth,
                max_results=args.max_results,
            )
        except ValueError as e:
            parser.error(f"Invalid search parameters: {e}")

    task = args.task
    max_steps = args.max_steps
    if max_steps is None and task:
        max_steps = estimate_steps(task)

    backend = PlaywrightBackend(settings.browser)
    metrics = MetricsTracker()
    try:
        await backend.start()
        browser = BrowserControl(backend, settings.browser)
        gateway = ModelGateway(settings.gateway)
        agent = VisionAgent(browser, gateway, settings=settings.agent, metrics=metrics)
        browser.correlation_id = gateway.correlation_id = agent.correlation_id

        result = await agent.run(task=task, max_steps=max_steps, start_url=args.url, params=params)
        print(result.model_dump_json(indent=2))

        if result.success:
            logger.success(f"Found {len(result.contacts)} contacts in {result.steps} steps")
            return 0
        logger.error(f"Run ended with status {result.status.value}: {result.error or result.summary}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        await backend.close()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
