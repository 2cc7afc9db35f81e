"""
api/sample_questions.py

외부 퀴즈 서비스 없이 실행할 때 쓰는 내장 샘플 카탈로그.
"""

from quiz_engine.models.question_model import Category, ProgramQuestion, QuestionOption, QuestionSpec
from quiz_engine.services.catalog import InMemoryCatalog


def _mcq(qid, text, options, answer, points=1, difficulty="easy", explanation=""):
    return QuestionSpec(
        id=qid,
        question_text=text,
        question_type="mcq",
        options=[QuestionOption(text=o, is_correct=(o == answer)) for o in options],
        correct_answer=answer,
        points=points,
        difficulty=difficulty,
        explanation=explanation,
    )


def _program(qid, language, code, output, distractors, difficulty="easy"):
    options = [output] + list(distractors)
    return QuestionSpec(
        id=qid,
        question_text="What is the output of the following code?",
        question_type="program",
        options=[QuestionOption(text=o, is_correct=(o == output)) for o in options],
        correct_answer=output,
        points=2,
        difficulty=difficulty,
        program_question=ProgramQuestion(code_snippet=code, language=language, expected_output=output),
    )


SAMPLE_CATEGORIES = [
    Category(
        id="arrays",
        name="Arrays",
        description="Indexing, length and traversal basics.",
        difficulty="beginner",
    ),
    Category(
        id="program-based",
        name="Program-Based Questions",
        description="Read a snippet and predict its output.",
        difficulty="intermediate",
    ),
    Category(
        id="fundamentals",
        name="Programming Fundamentals",
        description="Types, control flow and complexity.",
        difficulty="beginner",
    ),
]


SAMPLE_QUESTIONS = {
    "arrays": [
        _mcq("arr-1", "What is the length of [1, 2, 3, 4]?", ["3", "4", "5", "6"], "4", points=5),
        _mcq(
            "arr-2",
            "Which option names the element at index 1 of ['A', 'B', 'C']?",
            ["A", "B", "C", "D"],
            "B",
            points=5,
        ),
    ],
    "program-based": [
        _program("py-1", "python", "print(len('quiz'))", "4", ["3", "5", "quiz"]),
        _program("py-2", "python", "print([1, 2, 3][-1])", "3", ["1", "2", "IndexError"]),
        _program("py-3", "python", "print(7 // 2)", "3", ["3.5", "4", "2"], difficulty="medium"),
        _program("java-1", "java", 'System.out.println(5 / 2);', "2", ["2.5", "3", "2.0"]),
        _program("java-2", "java", 'System.out.println("a" + 1 + 2);', "a12", ["a3", "3a", "error"], difficulty="medium"),
        _program("java-3", "java", "int x = 3; x += x++; System.out.println(x);", "6", ["7", "3", "8"], difficulty="hard"),
        _program("js-1", "javascript", "console.log(typeof null);", "object", ["null", "undefined", "number"]),
        _program("js-2", "javascript", "console.log('2' + 2);", "22", ["4", "NaN", "error"]),
        _program("js-3", "javascript", "console.log([1, 2, 3].map(x => x * 2)[2]);", "6", ["4", "3", "undefined"], difficulty="medium"),
        _program("cpp-1", "cpp", "std::cout << 10 % 3;", "1", ["3", "0", "3.33"]),
        _program("cpp-2", "cpp", "int a[3] = {4, 5, 6}; std::cout << *(a + 2);", "6", ["4", "5", "garbage"], difficulty="medium"),
        _program("cpp-3", "cpp", "std::cout << sizeof(char);", "1", ["2", "4", "8"], difficulty="hard"),
    ],
    "fundamentals": [
        _mcq("fun-1", "What is the time complexity of binary search?", ["O(n)", "O(log n)", "O(1)", "O(n log n)"], "O(log n)", points=2, difficulty="medium"),
        _mcq("fun-2", "Which keyword defines a function in Python?", ["func", "def", "function", "lambda"], "def"),
        _mcq("fun-3", "Which structure is FIFO?", ["Stack", "Queue", "Tree", "Heap"], "Queue"),
        _mcq("fun-4", "What does HTTP status 404 mean?", ["Server error", "Not found", "Unauthorized", "Redirect"], "Not found"),
        _mcq("fun-5", "Which value is falsy in JavaScript?", ["'0'", "[]", "0", "{}"], "0", points=3, difficulty="hard"),
    ],
}


def build_sample_catalog() -> InMemoryCatalog:
    return InMemoryCatalog(SAMPLE_CATEGORIES, SAMPLE_QUESTIONS)
