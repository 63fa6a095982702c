"""
Interactive CLI for AISync.

Chat with the learning AI, rate its answers and trigger self-training from a
terminal. Everything is stored in the SQLite pattern store given by --db.
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from aisync.config import LearningConfig, load_overrides
from aisync.learning_ai import LearningAI
from aisync.patterns import FeedbackEvent


def build_config(args: argparse.Namespace) -> LearningConfig:
    config = LearningConfig.from_env()
    if args.config:
        config = config.with_overrides(load_overrides(Path(args.config)))
    if args.db:
        config = config.with_overrides({"db_path": args.db})
    if args.no_web:
        config = config.with_overrides({"enable_web_search": False})
    if args.no_teacher:
        config = config.with_overrides({"enable_teacher_llm": False})
    return config


def print_help():
    print("\n📖 Commands:")
    print("   /good      - Mark the last answer as helpful")
    print("   /bad       - Mark the last answer as unhelpful")
    print("   /stats     - Show learning metrics")
    print("   /learn N   - Run a self-training session with N questions")
    print("   /improve   - Run a self-improvement pass")
    print("   /help      - Show this help")
    print("   /quit      - Exit the program")
    print()


def print_metrics(ai: LearningAI):
    metrics = ai.get_metrics()
    print("\n📊 Statistics:")
    print(f"   Patterns: {metrics.total_patterns}")
    print(f"   Average accuracy: {metrics.average_accuracy:.1%}")
    print(f"   Interactions: {metrics.total_interactions}")
    print(f"   Learned this week: {metrics.knowledge_growth}")
    print(f"   Personal facts: {metrics.personal_facts}")
    print(f"   Feedback trend: {metrics.improvement_rate:+.2f}")
    if metrics.last_learning_session:
        print(f"   Last learning session: {metrics.last_learning_session:%Y-%m-%d %H:%M}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Chat with the AISync learning AI")
    parser.add_argument("--db", help="Path to the SQLite pattern store")
    parser.add_argument("--config", help="JSON file with an 'overrides' dict")
    parser.add_argument("--no-web", action="store_true", help="Disable Wikipedia lookups")
    parser.add_argument("--no-teacher", action="store_true", help="Disable the teacher LLM")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = build_config(args)
    ai = LearningAI.from_config(config)
    stats = ai.initialize()

    print("=" * 60)
    print("AISYNC - Self-learning assistant")
    print("=" * 60)
    print(f"   Store: {config.db_path}")
    print(f"   Patterns: {stats['total_patterns']}")
    print(f"   Wikipedia: {'on' if config.enable_web_search else 'off'}")
    print(f"   Teacher LLM: {'on' if ai.trainer and ai.trainer.available else 'off'}")
    print()
    print("Type '/help' for commands, '/quit' to exit")
    print("=" * 60)
    print()

    last_question = None
    context = []

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.startswith('/'):
            parts = user_input[1:].split()
            command = parts[0].lower() if parts else ""

            if command in ['quit', 'exit']:
                print("\nGoodbye!")
                break

            elif command == 'help':
                print_help()

            elif command == 'stats':
                print_metrics(ai)

            elif command in ['good', 'bad']:
                if not last_question:
                    print("\n⚠️  No recent answer to rate\n")
                    continue
                feedback_type = "positive" if command == 'good' else "negative"
                outcome = ai.process_feedback(FeedbackEvent(type=feedback_type, question=last_question))
                if outcome is None:
                    print("\n❌ Feedback could not be saved\n")
                elif feedback_type == "positive":
                    print(f"\n👍 Thanks! Reinforced {len(outcome.updated_ids)} patterns\n")
                else:
                    print(f"\n👎 Noted. Weakened {len(outcome.updated_ids)} patterns\n")

            elif command == 'learn':
                if ai.trainer is None or not ai.trainer.available:
                    print("\n⚠️  Self-training needs a teacher LLM (set OPENAI_API_KEY)\n")
                    continue
                try:
                    count = int(parts[1]) if len(parts) > 1 else 5
                except ValueError:
                    print("\n⚠️  Usage: /learn N\n")
                    continue
                if count < 1:
                    print("\n⚠️  Usage: /learn N (N must be at least 1)\n")
                    continue
                print(f"\n📚 Learning {count} new things...")
                session = ai.trainer.start_session(max_questions=count)
                print(f"   Status: {session.status}")
                print(f"   Asked: {session.questions_asked}, learned: {session.patterns_learned}, "
                      f"duplicates: {session.duplicates_skipped}")
                if session.topics:
                    print(f"   Topics: {', '.join(session.topics)}")
                if session.error_message:
                    print(f"   Error: {session.error_message}")
                print()

            elif command == 'improve':
                summary = ai.self_improve()
                print("\n🔧 Self-improvement complete")
                print(f"   Improved: {summary['improved']}, pruned: {summary['pruned']}, "
                      f"capped: {summary['capped']}")
                if summary['session']:
                    print(f"   Learning session: {summary['session']['status']}")
                print()

            else:
                print(f"\n⚠️  Unknown command: /{command}")
                print("   Type '/help' for available commands\n")
            continue

        response = ai.generate_response(user_input, context[-4:])
        print(f"\nAISync: {response}\n")

        last_question = user_input
        context.append(user_input)


if __name__ == "__main__":
    main()
