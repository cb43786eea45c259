import logging

from slack_bot.base import post_error_message, send_message_blocks
from slack_bot.commands.base import BaseCommand

logger = logging.getLogger(__name__)


class HelpCommand(BaseCommand):
    id = 'help'
    name = 'Help'
    description = 'Displays a help message'
    phrases = ('help', 'what can you do')
    usage_text = 'help'

    def __init__(self, context=None, commands=()):
        super().__init__(context)
        self.commands = list(commands)

    def handle_execution(self, args, slack_context):
        say = slack_context.say
        try:
            sections = [{
                'text': ('\nI can assist with a few things. Mention me with one of these commands:\n'),
            }]
            for command in self.commands:
                if command is self:
                    continue
                sections.append({'text': f"*{command.name}*\n{command.description}\n{command.usage()}"})
            send_message_blocks(say, sections)
        except Exception as e:
            logger.error(f"help failed: {e}", exc_info=True)
            post_error_message(say, e)
